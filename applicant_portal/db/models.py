from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON
import datetime as dt
from applicant_portal.db.session import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Application(Base):
    __tablename__ = "applications"
    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    # written explicitly by crud on every successful write
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # opaque identity from the Identity Provider; one row per owner
    owner_id = Column(String(255), nullable=False, unique=True, index=True)

    fields = Column(JSON, nullable=False, default=dict)  # name -> str | bool | None
    status = Column(String(16), default="not_started", nullable=False)
    consent_given = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<Application {self.id} owner={self.owner_id} {self.status}>"
