from __future__ import annotations
import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from .errors import StorageError
from .settings import settings


logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url or "sqlite:///./app.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
	# SQLite ignores ON DELETE CASCADE unless asked per connection
	if isinstance(dbapi_connection, sqlite3.Connection):
		cursor = dbapi_connection.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
	"""Commit everything done inside the block, or nothing.

	Any exception rolls the session back. Database failures are re-raised as
	``StorageError`` so callers never see driver detail; domain errors raised
	inside the block propagate unchanged.
	"""
	try:
		yield db
		db.commit()
	except SQLAlchemyError as exc:
		db.rollback()
		logger.exception("transaction rolled back: %s", type(exc).__name__)
		raise StorageError() from exc
	except BaseException:
		db.rollback()
		raise
