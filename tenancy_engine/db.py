# tenancy_engine/db.py
from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase

from .config import settings

# Connection execution option read by the SQLite begin hook.
SQLITE_BEGIN_OPTION = "sqlite_begin"


class Base(DeclarativeBase):
    pass


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _build_engine(url: str):
    if not _is_sqlite(url):
        return create_engine(url, pool_pre_ping=True, future=True)

    eng = create_engine(
        url,
        future=True,
        connect_args={
            "check_same_thread": False,
            "timeout": float(settings.sqlite_busy_timeout_seconds),
        },
    )

    # pysqlite's own BEGIN handling breaks SAVEPOINT, so BEGIN is emitted here.
    # Plain BEGIN is deferred: reads take no write lock. A session that loads a
    # row with lock=True opens its transaction with BEGIN IMMEDIATE instead
    # (see begin_write). WAL keeps open readers from blocking a writer's commit.
    @event.listens_for(eng, "connect")
    def _sqlite_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")
        dbapi_connection.execute("PRAGMA journal_mode=WAL")

    @event.listens_for(eng, "begin")
    def _sqlite_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION)
        conn.exec_driver_sql("BEGIN IMMEDIATE" if mode == "immediate" else "BEGIN")

    return eng


engine = _build_engine(settings.database_url)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def begin_write(db: Session) -> None:
    """
    Open the session's transaction holding the database write lock.

    Only SQLite needs this: there `SELECT ... FOR UPDATE` compiles away, so a
    guarded read-then-write has to start with BEGIN IMMEDIATE to keep two
    writers from reading the same row state. A transaction that is already
    open keeps the mode it began with.
    """
    if db.get_bind().dialect.name != "sqlite" or db.in_transaction():
        return
    db.connection(execution_options={SQLITE_BEGIN_OPTION: "immediate"})


def get_db():
    """
    Request-scoped session.

    Guarantees rollback on exceptions so a failed guard never leaves a
    half-applied transition behind, and so Postgres does not poison the
    connection with "InFailedSqlTransaction".
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
