"""SQLAlchemy helpers."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    pass


class StorageError(RuntimeError):
    """The relational datastore could not complete an operation."""


def _engine_options(url: str, timeout: float) -> dict:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return {"connect_args": {"timeout": timeout, "check_same_thread": False}}
    options = {"pool_timeout": timeout, "pool_pre_ping": True}
    seconds = max(1, int(timeout))
    if parsed.get_backend_name() == "postgresql":
        options["connect_args"] = {
            "connect_timeout": seconds,
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    elif parsed.get_backend_name() == "mysql":
        options["connect_args"] = {
            "connect_timeout": seconds,
            "read_timeout": seconds,
            "write_timeout": seconds,
        }
    return options


class Database:
    def __init__(self, url: str, timeout: float = 5.0):
        self.engine = create_engine(url, future=True, **_engine_options(url, timeout))
        self.SessionLocal = sessionmaker(self.engine, expire_on_commit=False, future=True)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and raises ``StorageError`` on failure."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
