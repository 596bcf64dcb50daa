from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from reviewdesk.core.config import settings


def _engine_options(dsn: str) -> dict[str, Any]:
    if dsn.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # Recycle connections the server closed while idle
    return {"pool_pre_ping": True}


engine = create_engine(settings.APP_DATABASE_DSN, **_engine_options(settings.APP_DATABASE_DSN))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; services decide when to commit."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create tables for every reviewdesk model."""
    import reviewdesk.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
