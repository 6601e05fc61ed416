# -*- coding: utf-8 -*-
"""
Client-side draft of the applicant's form.

All client state lives in one immutable DraftState and changes only through
reduce(). The engine wraps the reducer with the I/O: one read at mount,
optional periodic flush of pending fields, one guarded submission.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple, Union

from applicant_portal.client.transport import ApplicationTransport, ClientError, Result
from applicant_portal.errors import GateIssue, TransitionRejected
from applicant_portal.services.field_catalog import FieldCatalog, get_catalog
from applicant_portal.services.status_machine import TERMINAL_FOR_APPLICANT, Event, Status, is_locked, transition
from applicant_portal.services.submission_gate import CONSENT_FIELD, check_submission

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"
    SUBMITTING = "submitting"


@dataclass(frozen=True)
class DraftState:
    phase: Phase = Phase.IDLE
    status: Status = Status.NOT_STARTED
    fields: Dict[str, Any] = field(default_factory=dict)
    consent_given: bool = False
    record: Optional[Dict[str, Any]] = None  # last authoritative server copy
    dirty: bool = False
    pending: FrozenSet[str] = frozenset()
    error: Optional[ClientError] = None
    issues: Tuple[GateIssue, ...] = ()
    loaded: bool = False

    @property
    def submitting(self) -> bool:
        return self.phase == Phase.SUBMITTING

    @property
    def locked(self) -> bool:
        return is_locked(self.status)

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_FOR_APPLICANT

    @property
    def needs_leave_confirmation(self) -> bool:
        return self.dirty and self.status == Status.IN_PROGRESS


# ---------------------------
# Actions
# ---------------------------
@dataclass(frozen=True)
class LoadStarted:
    pass


@dataclass(frozen=True)
class Loaded:
    record: Optional[Dict[str, Any]]


@dataclass(frozen=True)
class LoadFailed:
    error: ClientError


@dataclass(frozen=True)
class Edited:
    name: str
    value: Any


@dataclass(frozen=True)
class ConsentChanged:
    value: bool


@dataclass(frozen=True)
class SaveStarted:
    pass


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class Synced:
    record: Dict[str, Any]


@dataclass(frozen=True)
class RequestFailed:
    error: ClientError


@dataclass(frozen=True)
class RequestAborted:
    pass


@dataclass(frozen=True)
class GateRefused:
    issues: Tuple[GateIssue, ...]


@dataclass(frozen=True)
class DraftDiscarded:
    pass


Action = Union[
    LoadStarted, Loaded, LoadFailed, Edited, ConsentChanged, SaveStarted, SubmitStarted,
    Synced, RequestFailed, RequestAborted, GateRefused, DraftDiscarded,
]


def _from_record(record: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not record:
        return dict(status=Status.NOT_STARTED, fields={}, consent_given=False, record=None)
    return dict(
        status=Status(record.get("status", Status.NOT_STARTED.value)),
        fields=dict(record.get("fields") or {}),
        consent_given=bool(record.get("consent_given")),
        record=record,
    )


def reduce(state: DraftState, action: Action) -> DraftState:
    if isinstance(action, LoadStarted):
        return replace(state, phase=Phase.LOADING, error=None)
    if isinstance(action, Loaded):
        return DraftState(phase=Phase.READY, loaded=True, **_from_record(action.record))
    if isinstance(action, LoadFailed):
        return replace(state, phase=Phase.READY, loaded=True, error=action.error)
    if isinstance(action, Edited):
        return replace(
            state,
            fields={**state.fields, action.name: action.value},
            status=transition(state.status, Event.EDIT),
            dirty=True,
            pending=state.pending | {action.name},
            issues=(),
        )
    if isinstance(action, ConsentChanged):
        return replace(
            state,
            consent_given=bool(action.value),
            dirty=True,
            pending=state.pending | {CONSENT_FIELD},
        )
    if isinstance(action, SaveStarted):
        return replace(state, phase=Phase.SAVING, error=None)
    if isinstance(action, SubmitStarted):
        return replace(state, phase=Phase.SUBMITTING, error=None, issues=())
    if isinstance(action, Synced):
        return replace(
            state, phase=Phase.READY, dirty=False, pending=frozenset(), error=None, issues=(),
            **_from_record(action.record),
        )
    if isinstance(action, RequestFailed):
        return replace(state, phase=Phase.READY, error=action.error, issues=tuple(action.error.issues))
    if isinstance(action, RequestAborted):
        return replace(state, phase=Phase.READY)
    if isinstance(action, GateRefused):
        return replace(state, issues=tuple(action.issues))
    if isinstance(action, DraftDiscarded):
        return replace(state, dirty=False, pending=frozenset(), issues=(), **_from_record(state.record))
    raise TypeError(f"Unknown action: {action!r}")


class DraftSyncEngine:
    def __init__(
        self,
        transport: ApplicationTransport,
        catalog: Optional[FieldCatalog] = None,
        autosave_interval: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.catalog = catalog or get_catalog()
        self.autosave_interval = autosave_interval
        self.clock = clock
        self.state = DraftState()
        self._dirty_since: Optional[float] = None

    def dispatch(self, action: Action) -> DraftState:
        self.state = reduce(self.state, action)
        if not self.state.dirty:
            self._dirty_since = None
        elif self._dirty_since is None:
            self._dirty_since = self.clock()
        return self.state

    # ---------------------------
    # Read path
    # ---------------------------
    def load(self) -> DraftState:
        """The single read at mount; later calls are no-ops."""
        if self.state.loaded or self.state.phase == Phase.LOADING:
            return self.state
        self.dispatch(LoadStarted())
        data, err = self.transport.get_application()
        if err is not None and err.status_code == 409:
            # row was being created concurrently; it exists now
            logger.info("load conflict for %s, retrying once", self.transport.owner_id)
            data, err = self.transport.get_application()
        if err is not None and err.status_code == 404:
            data, err = None, None
        if err is not None:
            return self.dispatch(LoadFailed(err))
        return self.dispatch(Loaded(data))

    # ---------------------------
    # Edits
    # ---------------------------
    def _check_editable(self) -> None:
        if self.state.submitting:
            raise TransitionRejected("A submission is in flight")
        if self.state.locked:
            raise TransitionRejected(f"Application is {self.state.status.value} and can no longer be edited")

    def edit(self, name: str, value: Any) -> DraftState:
        self.catalog.check_names([name])
        self._check_editable()
        return self.dispatch(Edited(name, value))

    def set_consent(self, value: bool) -> DraftState:
        self._check_editable()
        return self.dispatch(ConsentChanged(value))

    # ---------------------------
    # Navigation
    # ---------------------------
    def request_leave(self) -> bool:
        """True if the edit view may be left now; False means ask the applicant first."""
        return not self.state.needs_leave_confirmation

    def confirm_leave(self, discard: bool) -> bool:
        """Answer to the leave prompt. Discarding drops the draft; keeping it stays on the page."""
        if not discard:
            return False
        self.dispatch(DraftDiscarded())
        return True

    # ---------------------------
    # Write path
    # ---------------------------
    def _write(self, started: Action, call: Callable[[], Result]) -> DraftState:
        self.dispatch(started)
        try:
            data, err = call()
            if err is not None:
                logger.info("request failed: %s", err)
                self.dispatch(RequestFailed(err))
            else:
                self.dispatch(Synced(data))
        finally:
            if self.state.phase in (Phase.SAVING, Phase.SUBMITTING):
                self.dispatch(RequestAborted())
        return self.state

    def submit(self, consent_given: Optional[bool] = None) -> DraftState:
        if self.state.submitting:
            logger.info("submit ignored: a submission is already in flight")
            return self.state
        if self.state.locked:
            raise TransitionRejected(f"Application is already {self.state.status.value}")
        if consent_given is not None:
            self.dispatch(ConsentChanged(consent_given))

        issues = check_submission(self.state.fields, self.state.consent_given, self.catalog)
        if issues:
            logger.info("submit blocked locally: %s", [i.field for i in issues])
            return self.dispatch(GateRefused(tuple(issues)))

        fields = dict(self.state.fields)
        consent = self.state.consent_given
        return self._write(SubmitStarted(), lambda: self.transport.submit_application(fields, consent))

    def flush(self) -> bool:
        """Send pending fields as a draft save. Returns True when the server accepted them."""
        st = self.state
        if not st.dirty or st.phase != Phase.READY or st.locked:
            return False
        fields = {name: st.fields.get(name) for name in st.pending if name != CONSENT_FIELD}
        consent = st.consent_given if CONSENT_FIELD in st.pending else None
        self._write(SaveStarted(), lambda: self.transport.save_application(fields, consent_given=consent))
        return not self.state.dirty

    def maybe_autosave(self, now: Optional[float] = None) -> bool:
        """Periodic flush keyed to the dirty flag; call it from the UI's tick."""
        if not self.autosave_interval or self._dirty_since is None:
            return False
        now = self.clock() if now is None else now
        if now - self._dirty_since < self.autosave_interval:
            return False
        if self.flush():
            return True
        if self.state.dirty:
            self._dirty_since = now
        return False

    # ---------------------------
    # Attendance
    # ---------------------------
    def _respond(self, call: Callable[[], Result]) -> DraftState:
        data, err = call()
        if err is not None:
            return self.dispatch(RequestFailed(err))
        return self.dispatch(Synced(data))

    def confirm_attendance(self) -> DraftState:
        return self._respond(self.transport.confirm_attendance)

    def decline_attendance(self) -> DraftState:
        return self._respond(self.transport.decline_attendance)
