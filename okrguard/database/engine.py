from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from okrguard.config import settings
from okrguard.database.tenant import CLEAR_CONTEXT_SQL

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    pool_pre_ping=True,
    pool_recycle=settings.db_pool_recycle_seconds,
    max_overflow=settings.db_max_overflow,
    echo=settings.environment == "development",
)


@event.listens_for(engine.sync_engine, "checkout")
def _clear_context_on_checkout(dbapi_connection, connection_record, connection_proxy):
    """Overwrite any tenant context a previous borrower left on this connection."""
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(CLEAR_CONTEXT_SQL)
    finally:
        cursor.close()
    dbapi_connection.commit()


def create_installer_engine() -> AsyncEngine:
    """Dedicated single-connection engine for policy installation.

    Never shares a connection with in-flight requests. Callers dispose it
    when done.
    """
    return create_async_engine(
        settings.database_url,
        pool_size=1,
        max_overflow=0,
        pool_pre_ping=True,
    )
