"""
Database setup for Diceception.
Uses SQLite under the save directory locally; use DATABASE_URL (e.g. Heroku Postgres) for production.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from diceception.config import SAVE_DIR

# Heroku sets DATABASE_URL to postgres://; SQLAlchemy 2.x expects postgresql://
_raw_url = os.environ.get("DATABASE_URL")
if _raw_url and _raw_url.startswith("postgres://"):
    DATABASE_URL = _raw_url.replace("postgres://", "postgresql://", 1)
elif _raw_url:
    DATABASE_URL = _raw_url
else:
    os.makedirs(SAVE_DIR, exist_ok=True)
    DATABASE_URL = f"sqlite:///{os.path.join(SAVE_DIR, 'diceception.db')}"

# SQLite needs check_same_thread=False; Postgres does not use that arg.
# In-memory SQLite must share one connection or every session sees an empty database.
_engine_kwargs = {}
if DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        _engine_kwargs["poolclass"] = StaticPool
engine = create_engine(DATABASE_URL, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Dependency that yields a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables."""
    # Register models on Base before create_all
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_db_file_path() -> str | None:
    """Path of the SQLite file in use, or None for other backends."""
    if DATABASE_URL.startswith("sqlite:///") and DATABASE_URL != "sqlite:///:memory:":
        return DATABASE_URL[len("sqlite:///"):]
    return None
