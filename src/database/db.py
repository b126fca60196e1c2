from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from src.models import article, source, issue, lifecycle, card, pipeline_run  # noqa: F401  (registers tables)
from src.models.base import Base
from config import Config

engine = create_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create any missing tables (idempotent)."""
    Base.metadata.create_all(bind=bind or engine)
