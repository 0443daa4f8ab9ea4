from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings


def configure_sqlite_engine(engine: Engine) -> Engine:
    """
    Make pysqlite honour SQLAlchemy transaction boundaries.

    The driver defers BEGIN until the first DML statement, which lets an early
    SAVEPOINT become the outermost transaction and commit on RELEASE. Emitting
    BEGIN ourselves keeps nested units inside the outer transaction.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(url: str, *, echo: bool = False) -> Engine:
    if url.startswith("sqlite"):
        return configure_sqlite_engine(
            create_engine(url, echo=echo, connect_args={"check_same_thread": False})
        )
    return create_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    One all-or-nothing unit of work.

    Opens a real transaction when the session is idle, or a SAVEPOINT when the
    caller already holds one, so the unit rolls back on its own without
    discarding the caller's earlier work. In the SAVEPOINT case the caller
    still owns the final commit.
    """
    tx_ctx = db.begin_nested() if db.in_transaction() else db.begin()
    with tx_ctx:
        yield db
