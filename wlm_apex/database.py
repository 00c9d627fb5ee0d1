"""Database connection and session management."""

import os
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .models import Base

# Default database directory for the local mirror
DATA_DIR = Path(__file__).parent.parent / "data"

# Environment variable holding a SQLAlchemy URL for the source database
DB_URL_ENV = "WLM_APEX_DB_URL"


def get_db_url() -> str:
    """Get the SQLAlchemy URL of the WLM source database.

    ``WLM_APEX_DB_URL`` may point at the cluster itself (any dialect
    SQLAlchemy can reach) or at another SQLite file. Without it, the local
    mirror under ``data/wlm.db`` is used.

    Returns:
        SQLAlchemy database URL
    """
    if DB_URL_ENV in os.environ:
        return os.environ[DB_URL_ENV]

    return f"sqlite:///{DATA_DIR / 'wlm.db'}"


def get_engine(url: str | None = None, echo: bool = False):
    """Create and return a SQLAlchemy engine.

    Args:
        url: Database URL. If None, uses get_db_url().
        echo: If True, log all SQL statements

    Returns:
        SQLAlchemy Engine instance
    """
    url = url or get_db_url()

    # Ensure the parent directory of a file-backed SQLite database exists
    if url.startswith("sqlite:///") and url != "sqlite:///:memory:":
        Path(url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

    return create_engine(url, echo=echo)


def get_session(url: str | None = None, engine=None):
    """Create and return a new database session.

    Args:
        url: Database URL, used only when engine is None
        engine: Existing engine to use. If None, creates a new one.

    Returns:
        SQLAlchemy Session instance
    """
    if engine is None:
        engine = get_engine(url)

    Session = sessionmaker(bind=engine)
    return Session()


def init_db(url: str | None = None, echo: bool = False):
    """Create the WLM tables in a local mirror database.

    Never run this against the cluster: the system tables there are
    provided by the platform.

    Args:
        url: Database URL. If None, uses get_db_url().
        echo: If True, log all SQL statements

    Returns:
        Engine instance
    """
    engine = get_engine(url, echo=echo)
    Base.metadata.create_all(engine)
    return engine
