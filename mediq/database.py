"""Database engine setup.

Production Pattern:
- One engine per process, shared by the store
- Automatic table creation via init_database()
- SQLite gets BEGIN IMMEDIATE so concurrent writers wait on the busy
  timeout instead of failing with "database is locked"
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from mediq import config
from mediq.api.database_models import Base


def create_store_engine(database_url: str = config.DATABASE_URL) -> Engine:
    """
    Create SQLAlchemy engine for the appointment store.

    Args:
        database_url: SQLAlchemy connection string
                      (sqlite:///mediq.db, postgresql+psycopg://...)

    Returns:
        Configured Engine
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={
            "check_same_thread": False,
            "timeout": config.SQLITE_BUSY_TIMEOUT_SECONDS,
        },
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        # Transactions are started explicitly in _begin_immediate
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_database(engine: Engine):
    """
    Create appointment tables if they do not exist.

    Safe to call multiple times (idempotent).
    """
    Base.metadata.create_all(engine)
