from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import settings


def _is_sqlite() -> bool:
    return settings.database_url.startswith("sqlite")


def _connect_args() -> dict[str, str | bool]:
    if _is_sqlite():
        return {"check_same_thread": False}
    return {}


engine = create_engine(settings.database_url, connect_args=_connect_args())
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


if _is_sqlite():
    # pysqlite defers BEGIN on its own; SAVEPOINTs used by the payment
    # reconciler need SQLAlchemy to own the transaction boundaries.
    @event.listens_for(engine, "connect")
    def _sqlite_disable_implicit_begin(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
