import os
import tempfile

_tmp = tempfile.mkdtemp(prefix="applicant-portal-test-")
os.environ["DB_URL"] = f"sqlite:///{os.path.join(_tmp, 'portal.db')}"
os.environ["ADMIN_API_KEY"] = "test-admin-key"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

from applicant_portal.config import settings
from applicant_portal.db.models import Application
from applicant_portal.db.session import SessionLocal, init_db
from applicant_portal.main import app
from applicant_portal.services.field_catalog import get_catalog

init_db()

ADMIN = {"X-Admin-Key": "test-admin-key"}


def owner(owner_id: str = "user_alice") -> dict:
    return {settings.OWNER_HEADER: owner_id}


def complete_fields() -> dict:
    """A value for every catalog field that passes the submission gate."""
    out = {}
    for d in get_catalog():
        if d.kind == "checkbox":
            out[d.name] = True
        elif d.choices:
            out[d.name] = d.choices[0]
        else:
            out[d.name] = "a" * max(d.min_length or 0, 12)
    return out


def set_status(owner_id: str, status: str) -> None:
    with SessionLocal() as db:
        rec = db.query(Application).filter_by(owner_id=owner_id).one()
        rec.status = status
        db.commit()


@pytest.fixture(autouse=True)
def clean_table():
    yield
    with SessionLocal() as db:
        db.execute(delete(Application))
        db.commit()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
