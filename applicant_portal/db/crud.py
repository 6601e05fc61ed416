"""Persistence upsert engine: the only code that writes the applications table.

Every public function here runs as one transaction: it either commits the
whole change or rolls back and raises a PortalError.
"""
import logging
from contextlib import contextmanager
from typing import Mapping, Optional

from sqlalchemy import insert as sa_insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from applicant_portal.db.models import Application, utcnow
from applicant_portal.errors import (
    ApplicationConflict,
    ApplicationNotFound,
    PortalError,
    StorageFailure,
    SubmissionRejected,
    TransitionRejected,
)
from applicant_portal.services.field_catalog import FieldCatalog, get_catalog
from applicant_portal.services.status_machine import (
    APPLICANT_INTENTS,
    Actor,
    Event,
    Status,
    is_locked,
    ratchet,
    transition,
)
from applicant_portal.services.submission_gate import check_submission

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def _now():
    return utcnow()


@contextmanager
def _atomic(db: Session, action: str, who):
    try:
        yield
        db.commit()
    except PortalError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning("%s hit a uniqueness conflict for %s: %s", action, who, e.orig)
        raise ApplicationConflict(f"Concurrent {action} for the same owner; retry") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("%s failed for %s", action, who)
        raise StorageFailure(f"Could not {action} the application") from e


def _ensure_row(db: Session, owner_id: str) -> None:
    now = _now()
    values = dict(
        owner_id=owner_id,
        status=Status.NOT_STARTED.value,
        fields={},
        consent_given=False,
        created_at=now,
        updated_at=now,
    )
    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    if insert is not None:
        db.execute(insert(Application).values(**values).on_conflict_do_nothing(index_elements=["owner_id"]))
        return
    # no ON CONFLICT support: a racing insert surfaces as IntegrityError -> ApplicationConflict
    if db.scalar(select(Application.id).where(Application.owner_id == owner_id)) is None:
        db.execute(sa_insert(Application).values(**values))


def _select_owner(owner_id: str, lock: bool = False):
    stmt = select(Application).where(Application.owner_id == owner_id)
    if lock:
        stmt = stmt.with_for_update()
    return stmt.execution_options(populate_existing=True)


def merge_fields(stored: Optional[Mapping], incoming: Optional[Mapping]) -> dict:
    """Incoming non-null values win; absent or null keys keep the stored value."""
    merged = dict(stored or {})
    for name, value in (incoming or {}).items():
        if value is not None:
            merged[name] = value
    return merged


def get_or_create_application(db: Session, owner_id: str) -> Application:
    with _atomic(db, "load", owner_id):
        _ensure_row(db, owner_id)
        rec = db.execute(_select_owner(owner_id)).scalar_one()
    db.refresh(rec)
    return rec


def get_application(db: Session, app_id: int) -> Application | None:
    return db.get(Application, app_id)


def save_application(
    db: Session,
    owner_id: str,
    fields: Optional[Mapping] = None,
    consent_given: Optional[bool] = None,
    intent: str = Status.IN_PROGRESS.value,
    catalog: Optional[FieldCatalog] = None,
) -> Application:
    """Save-draft and submit share this path; `intent` tells them apart."""
    catalog = catalog or get_catalog()
    fields = dict(fields or {})
    catalog.check_names(fields)
    try:
        requested = Status(intent)
    except ValueError:
        raise TransitionRejected(f"Unknown status intent: {intent!r}")
    if requested not in APPLICANT_INTENTS:
        raise TransitionRejected(f"Applicants cannot request status {requested.value}")
    intent = requested.value

    with _atomic(db, "save", owner_id):
        _ensure_row(db, owner_id)
        rec = db.execute(_select_owner(owner_id, lock=True)).scalar_one()

        if is_locked(rec.status):
            # the submitted record is frozen; only the write time moves
            merged, consent = rec.fields, rec.consent_given
            if fields or consent_given is not None:
                logger.info("application %s is %s; ignored field changes from %s", rec.id, rec.status, owner_id)
        else:
            merged = merge_fields(rec.fields, fields)
            consent = rec.consent_given if consent_given is None else bool(consent_given)
        new_status = ratchet(rec.status, intent)

        if new_status == Status.SUBMITTED and rec.status != Status.SUBMITTED.value:
            issues = check_submission(merged, consent, catalog)
            if issues:
                logger.info("submission refused for %s: %s", owner_id, [i.field for i in issues])
                raise SubmissionRejected(issues)

        if new_status.value != rec.status:
            logger.info("application %s: %s -> %s", rec.id, rec.status, new_status.value)
        elif intent != rec.status:
            logger.info("application %s: kept %s over requested %s", rec.id, rec.status, intent)

        rec.fields = merged
        rec.consent_given = consent
        rec.status = new_status.value
        rec.updated_at = _now()
    db.refresh(rec)
    return rec


def submit_application(
    db: Session,
    owner_id: str,
    fields: Optional[Mapping],
    consent_given: bool,
    catalog: Optional[FieldCatalog] = None,
) -> Application:
    return save_application(
        db, owner_id, fields, consent_given=consent_given, intent=Status.SUBMITTED.value, catalog=catalog
    )


_ATTENDANCE_TARGET = {
    Event.CONFIRM_ATTENDANCE: Status.CONFIRMED,
    Event.DECLINE_ATTENDANCE: Status.WAITLISTED,
}


def respond_to_acceptance(db: Session, owner_id: str, event: Event) -> Application:
    """Confirm or decline attendance. Confirming twice is a no-op.

    Decline is not short-circuited: a waitlisted record may come straight
    from the authority, so it always needs a stored `accepted`.
    """
    event = Event(event)
    target = _ATTENDANCE_TARGET[event]
    with _atomic(db, event.value, owner_id):
        rec = db.execute(_select_owner(owner_id, lock=True)).scalar_one_or_none()
        if rec is None:
            raise TransitionRejected("No application to respond to")
        if not (event == Event.CONFIRM_ATTENDANCE and rec.status == target.value):
            try:
                new_status = transition(rec.status, event, Actor.APPLICANT)
            except TransitionRejected:
                logger.info("%s refused for %s in status %s", event.value, owner_id, rec.status)
                raise
            logger.info("application %s: %s -> %s", rec.id, rec.status, new_status.value)
            rec.status = new_status.value
            rec.updated_at = _now()
    db.refresh(rec)
    return rec


def confirm_attendance(db: Session, owner_id: str) -> Application:
    return respond_to_acceptance(db, owner_id, Event.CONFIRM_ATTENDANCE)


def decline_attendance(db: Session, owner_id: str) -> Application:
    return respond_to_acceptance(db, owner_id, Event.DECLINE_ATTENDANCE)


_DECISION_EVENT = {
    Status.ACCEPTED: Event.ACCEPT,
    Status.WAITLISTED: Event.WAITLIST,
}


def decide_application(db: Session, app_id: int, decision: str) -> Application:
    """Authority decision on a submitted application."""
    try:
        target = Status(decision)
    except ValueError:
        target = None
    event = _DECISION_EVENT.get(target)
    if event is None:
        raise TransitionRejected(f"Decision must be accepted or waitlisted, not {decision}")
    with _atomic(db, "decide", app_id):
        rec = db.execute(
            select(Application).where(Application.id == app_id).with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if rec is None:
            raise ApplicationNotFound(f"Application {app_id} not found")
        if rec.status != target.value:
            new_status = transition(rec.status, event, Actor.AUTHORITY)
            logger.info("application %s: %s -> %s (authority)", rec.id, rec.status, new_status.value)
            rec.status = new_status.value
            rec.updated_at = _now()
    db.refresh(rec)
    return rec
