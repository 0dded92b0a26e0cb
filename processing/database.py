"""
Database connection and session management.

Lookups are stored in the company_lookups table; see CompanyLookup.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config.logging import logger
from config.settings import settings
from processing.models import Base, CompanyLookup

if TYPE_CHECKING:
    from processing.entity_resolution.resolver import LookupOutcome

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db(bind: Optional[Engine] = None):
    """Create the tables, and the directory of a file-backed SQLite database."""
    bind = bind or engine
    url = bind.url
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(bind=bind)


def save_outcomes(outcomes: Iterable["LookupOutcome"], db: Optional[Session] = None) -> int:
    """
    Store one CompanyLookup row per outcome in a single transaction.

    Args:
        outcomes: Resolver outcomes
        db: Session to use; a SessionLocal session is opened and closed if omitted

    Returns:
        Number of rows added
    """
    own_session = db is None
    db = db or SessionLocal()
    try:
        count = 0
        for outcome in outcomes:
            db.add(CompanyLookup.from_outcome(outcome))
            count += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        if own_session:
            db.close()

    logger.info(f"Saved {count} lookups to the database")
    return count


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
