from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from fastapi import Request
from db.base import Base
import logging

logger = logging.getLogger(__name__)

engine_kwargs = {"pool_pre_ping": True, "pool_recycle": 300}

def make_engine(database_url: str) -> Engine:
    """Build the ledger engine; SQLite needs cross-thread access for FastAPI's threadpool"""
    url = make_url(database_url)
    if url.drivername.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False}, **engine_kwargs)
    return create_engine(database_url, **engine_kwargs)

def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db(request: Request):
    """Dependency to get database session"""
    db: Session = request.app.state.session_factory()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        db.rollback()
        raise
    finally:
        db.close()

def create_tables(engine: Engine):
    """Create all tables"""
    import models.payment  # noqa: F401 ensure model registration
    Base.metadata.create_all(bind=engine)
