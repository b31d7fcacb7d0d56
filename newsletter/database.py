"""
Database Configuration and Session Management
"""

from sqlalchemy import create_engine, event
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, declarative_base, sessionmaker
import structlog

from newsletter.config import Settings

logger = structlog.get_logger(__name__)

# Base class for all models
Base = declarative_base()


def create_session_factory(settings: Settings) -> sessionmaker:
    """
    Create the process-wide connection pool and a session factory bound to it.

    Called once at process start; the returned factory is handed to the
    HTTP layer and to the delivery worker.

    Args:
        settings: Application settings

    Returns:
        sessionmaker producing sessions on the shared, bounded pool
    """
    url = settings.sqlalchemy_database_url
    is_sqlite = url.startswith("sqlite")

    logger.info("database_connecting", dialect=url.split(":", 1)[0])
    engine = create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using them
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )

    if is_sqlite:
        # Local runs and tests: let readers proceed while a writer holds the lock
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    logger.info("database_pool_ready", pool_size=settings.db_pool_size)
    return factory


def insert_ignoring_conflicts(session: Session, model, index_elements: list, **values):
    """
    Build an ``INSERT ... ON CONFLICT DO NOTHING`` statement for the session's dialect.

    Args:
        session: Session whose bind decides the dialect
        model: Mapped class to insert into
        index_elements: Columns of the unique constraint to ignore conflicts on
        **values: Column values for the new row

    Returns:
        Executable insert statement
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(model)
    elif dialect == "sqlite":
        stmt = sqlite_insert(model)
    else:
        raise NotImplementedError(f"insert-or-ignore is not supported on {dialect}")

    return stmt.values(**values).on_conflict_do_nothing(index_elements=index_elements)
