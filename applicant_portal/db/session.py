import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from applicant_portal.config import settings

logger = logging.getLogger(__name__)

# sqlite serializes writers on the database lock; let a waiting upsert block instead of failing fast
connect_args = {"check_same_thread": False, "timeout": 30} if settings.DB_URL.startswith("sqlite") else {}
engine = create_engine(settings.DB_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()

def init_db():
    from applicant_portal.db import models  # ensure models are imported
    models.Base.metadata.create_all(bind=engine)
    logger.info("database ready (%s)", engine.url.render_as_string(hide_password=True))
