"""WINQER — Database Engine & Session Factory.

In production DATABASE_URL points at the Supabase Postgres instance;
local runs and tests use SQLite.
"""

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from winqer.config import settings
from winqer.core.logging import get_logger

logger = get_logger("database")

db_url = settings.effective_database_url
is_sqlite = db_url.startswith("sqlite")


def masked_url(url: str = db_url) -> str:
    """Connection URL with the password hidden."""
    return make_url(url).render_as_string(hide_password=True)


def _engine_kwargs() -> dict:
    if is_sqlite:
        return {"connect_args": {"check_same_thread": False}}
    # Supabase's pooler drops idle connections
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10, "pool_recycle": 300}


engine = create_engine(db_url, echo=False, **_engine_kwargs())
logger.info(f"Database backend: {'sqlite' if is_sqlite else 'postgresql'} ({masked_url()})")


def test_connection() -> bool:
    """SELECT 1 against the engine; False when the database is unreachable."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False
    return True


def init_db() -> None:
    """Create the store, profile, strategy and analytics cache tables."""
    # Table classes must be imported so they register on the metadata
    import winqer.models.store_models  # noqa: F401
    import winqer.models.cache_models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ready")


def get_session():
    """Dependency — yields a DB session."""
    with Session(engine) as session:
        yield session
