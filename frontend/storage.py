"""SQLAlchemy + SQLite persistence for client state.

The whole client state lives as one JSON document per namespace key,
so a rehydrate is a single read.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path

import structlog
from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = structlog.get_logger(__name__)

Base = declarative_base()


class StateEntry(Base):
    """Persisted state document."""
    __tablename__ = "client_state"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)  # JSON string
    updated_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))


_engine = None
_SessionLocal = None


def init_storage(database_url: str | None = None) -> None:
    """Create engine + tables. Call once at startup.

    Args:
        database_url: SQLAlchemy connection string. Defaults to STATE_DATABASE_URL env var.
    """
    global _engine, _SessionLocal

    url = database_url or os.environ.get("STATE_DATABASE_URL", "sqlite:///data/chat_state.sqlite")
    _ensure_sqlite_dir(url)
    _engine = create_engine(url, echo=False)
    _SessionLocal = sessionmaker(bind=_engine)

    Base.metadata.create_all(_engine)
    logger.info("storage.initialized", url=url.split("///")[0] + "///***")


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


def is_initialized() -> bool:
    return _SessionLocal is not None


def get_session() -> Session:
    """Get a new database session."""
    if _SessionLocal is None:
        raise RuntimeError("Storage not initialized. Call init_storage() first.")
    return _SessionLocal()


def load_state(key: str) -> dict | None:
    """Read the JSON document stored under ``key``, or None if absent or unreadable."""
    with get_session() as session:
        row = session.get(StateEntry, key)
        if row is None:
            return None
        try:
            return json.loads(row.value)
        except json.JSONDecodeError as e:
            logger.error("storage.corrupt_state", key=key, error=str(e))
            return None


def save_state(key: str, data: dict) -> None:
    """Upsert the JSON document for ``key``."""
    with get_session() as session:
        row = session.get(StateEntry, key)
        payload = json.dumps(data)
        if row is None:
            session.add(StateEntry(key=key, value=payload))
        else:
            row.value = payload
            row.updated_at = datetime.now(timezone.utc)
        session.commit()
        logger.debug("storage.saved", key=key, size=len(payload))
