from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from applicant_portal.api.deps import get_db, get_owner_id, http_error
from applicant_portal.db import crud
from applicant_portal.db.schemas import ApplicationOut
from applicant_portal.errors import PortalError

router = APIRouter(tags=["attendance"])

@router.post("/application/confirm", response_model=ApplicationOut)
def confirm_attendance(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)):
    try:
        rec = crud.confirm_attendance(db, owner_id)
    except PortalError as e:
        raise http_error(e)
    return ApplicationOut.model_validate(rec)

@router.post("/application/decline", response_model=ApplicationOut)
def decline_attendance(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)):
    try:
        rec = crud.decline_attendance(db, owner_id)
    except PortalError as e:
        raise http_error(e)
    return ApplicationOut.model_validate(rec)
