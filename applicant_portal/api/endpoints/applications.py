import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from applicant_portal.api.deps import catalog_dep, get_db, get_owner_id, http_error
from applicant_portal.db import crud
from applicant_portal.db.schemas import ApplicationOut, SaveApplicationIn, SubmitApplicationIn
from applicant_portal.errors import PortalError
from applicant_portal.services.field_catalog import FieldCatalog

router = APIRouter(tags=["applications"])
logger = logging.getLogger(__name__)


@router.get("/application", response_model=ApplicationOut)
def get_application(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)):
    try:
        rec = crud.get_or_create_application(db, owner_id)
    except PortalError as e:
        raise http_error(e)
    return ApplicationOut.model_validate(rec)


@router.post("/application", response_model=ApplicationOut)
def save_application(
    body: SaveApplicationIn,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    catalog: FieldCatalog = Depends(catalog_dep),
):
    try:
        rec = crud.save_application(
            db, owner_id, body.fields,
            consent_given=body.consent_given, intent=body.status, catalog=catalog,
        )
    except PortalError as e:
        raise http_error(e)
    return ApplicationOut.model_validate(rec)


@router.post(
    "/application/submit",
    response_model=ApplicationOut,
    responses={400: {"description": "Submission gate refused the application"}},
)
def submit_application(
    body: SubmitApplicationIn,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    catalog: FieldCatalog = Depends(catalog_dep),
):
    try:
        rec = crud.submit_application(db, owner_id, body.fields, body.consent_given, catalog=catalog)
    except PortalError as e:
        raise http_error(e)
    logger.info("application %s submitted by %s (status %s)", rec.id, owner_id, rec.status)
    return ApplicationOut.model_validate(rec)
