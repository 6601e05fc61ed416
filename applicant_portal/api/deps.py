import secrets
from typing import Generator, Optional

from fastapi import Header, HTTPException, Request
from sqlalchemy.orm import Session

from applicant_portal.config import settings
from applicant_portal.db.schemas import GateIssueOut, SubmissionErrorOut
from applicant_portal.db.session import SessionLocal
from applicant_portal.errors import (
    ApplicationConflict,
    ApplicationNotFound,
    PortalError,
    StorageFailure,
    SubmissionRejected,
    TransitionRejected,
    Unauthenticated,
    UnknownField,
)
from applicant_portal.services.field_catalog import FieldCatalog, get_catalog

_STATUS_FOR = {
    Unauthenticated: 401,
    ApplicationNotFound: 404,
    TransitionRejected: 400,
    SubmissionRejected: 400,
    ApplicationConflict: 409,
    UnknownField: 422,
    StorageFailure: 500,
}


def http_error(exc: PortalError) -> HTTPException:
    code = _STATUS_FOR.get(type(exc), 500)
    if isinstance(exc, SubmissionRejected):
        detail = SubmissionErrorOut(
            message=str(exc), issues=[GateIssueOut(**i.as_dict()) for i in exc.issues]
        ).model_dump()
    else:
        detail = str(exc)
    return HTTPException(status_code=code, detail=detail)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_owner_id(request: Request) -> str:
    """Owner identity as asserted by the Identity Provider in front of the API."""
    owner_id = (request.headers.get(settings.OWNER_HEADER) or "").strip()
    if not owner_id:
        raise http_error(Unauthenticated("Missing owner identity"))
    return owner_id


def require_authority(x_admin_key: Optional[str] = Header(default=None)) -> None:
    expected = settings.ADMIN_API_KEY
    if not expected or not x_admin_key or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(403, "Authority access required")


def catalog_dep() -> FieldCatalog:
    return get_catalog()
