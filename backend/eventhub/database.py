"""SQLAlchemy engine, session factory and the `get_db` dependency."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from eventhub.config import settings

Base = declarative_base()


def configure_sqlite_engine(engine: Engine) -> Engine:
    """Make SQLite transactions take the write lock up front.

    pysqlite's own BEGIN handling is disabled so that every transaction starts
    with BEGIN IMMEDIATE; concurrent writers then queue on the busy timeout
    instead of failing when they upgrade a stale read snapshot.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS},
        )
        return configure_sqlite_engine(engine)
    return create_engine(url, pool_pre_ping=True, pool_timeout=settings.DB_TIMEOUT_SECONDS)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Yield a request-scoped session, closed when the request finishes."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
