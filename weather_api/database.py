"""
Database connection and session management for the SQL cache backend.
Works with any SQLAlchemy URL; SQLite and PostgreSQL are the tested ones.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the cache database.

    SQLite connections are shared with the worker threads the cache runs
    its queries on, so same-thread checking is turned off for them.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine)


@contextmanager
def db_context(session_factory: sessionmaker):
    """
    Context manager for database session.

    Usage:
        with db_context(session_factory) as db:
            # Use db session
            pass
    """
    db: Session = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine):
    """
    Initialize the database by creating all tables.
    """
    from weather_api.db_models import Base

    Base.metadata.create_all(bind=engine)
