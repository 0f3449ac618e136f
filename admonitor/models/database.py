from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from admonitor.config import DATABASE_URL, DATA_DIR

Base = declarative_base()


def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine, preparing the local data directory for SQLite files."""
    if url.startswith("sqlite:///"):
        DATA_DIR.mkdir(parents=True, exist_ok=True)
    engine = create_engine(url, pool_pre_ping=True, future=True, **kwargs)
    if url.startswith("sqlite"):
        _use_explicit_sqlite_transactions(engine)
    return engine


def _use_explicit_sqlite_transactions(engine: Engine):
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT nesting; emit it ourselves
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@contextmanager
def session_scope(factory=SessionLocal) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine = None):
    """Create all tables."""
    # Import models so they register on Base.metadata
    from admonitor.models import ad, brand, scrape_job, setting, snapshot  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
