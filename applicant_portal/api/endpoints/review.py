from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from applicant_portal.api.deps import get_db, http_error, require_authority
from applicant_portal.db import crud
from applicant_portal.db.schemas import ApplicationOut, DecisionIn
from applicant_portal.errors import PortalError

# organiser-side routes; never reachable with an applicant identity alone
router = APIRouter(tags=["review"], dependencies=[Depends(require_authority)])

@router.get("/applications/{app_id}", response_model=ApplicationOut)
def get_application(app_id: int, db: Session = Depends(get_db)):
    rec = crud.get_application(db, app_id)
    if not rec:
        raise HTTPException(404, "Not found")
    return ApplicationOut.model_validate(rec)

@router.post("/applications/{app_id}/decision", response_model=ApplicationOut)
def authority_decision(app_id: int, body: DecisionIn, db: Session = Depends(get_db)):
    try:
        rec = crud.decide_application(db, app_id, body.decision)
    except PortalError as e:
        raise http_error(e)
    return ApplicationOut.model_validate(rec)
