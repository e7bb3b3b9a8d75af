import logging

from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, echo=SQL_ECHO)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def insert_unique(db: Session, record, what: str) -> bool:
    """Insert a row guarded by a unique constraint.

    Returns False when the constraint rejects it. Other storage errors are
    raised as 503 after rolling back.
    """
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Storage error while recording %s: %s", what, exc)
        raise HTTPException(status_code=503, detail=f"Could not record {what}") from exc
    db.refresh(record)
    return True
