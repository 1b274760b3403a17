from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import get_settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_pragmas(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def make_engine(database_url: str, **engine_kwargs: Any) -> Engine:
    """
    Engine for ``database_url``. SQLite connections may be shared across the
    scheduler and request threads and always enforce foreign keys.
    """
    connect_args: dict[str, object] = {}
    if _is_sqlite(database_url):
        connect_args["check_same_thread"] = False

    eng = create_engine(database_url, connect_args=connect_args, **engine_kwargs)
    if _is_sqlite(database_url):
        event.listen(eng, "connect", _enable_sqlite_pragmas)
    return eng


engine = make_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def init_db(bind: Engine = engine) -> None:
    """Create any missing tables; migrations remain the source of truth."""
    import models  # noqa: F401  registers the mappers on Base.metadata

    Base.metadata.create_all(bind)


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
