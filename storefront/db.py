from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def make_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # one shared connection so an in-memory database survives across sessions
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    return create_engine(database_url, pool_pre_ping=True, future=True)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """
    Create tables (idempotent).
    Called once at application startup.
    """
    # Import here to avoid circulars
    from .models import Base  # noqa
    Base.metadata.create_all(bind=engine)


def get_session(request: Request):
    """
    FastAPI dependency: yields a DB session, commits on success, rolls back on error.

    Everything a request writes lands in one transaction, so an order header
    and its line items are committed together or not at all.
    """
    s: Session = request.app.state.sessionmaker()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
