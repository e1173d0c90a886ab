"""Database connection utilities for the CMS data-access layer.

Exposes the two capabilities the rest of the package relies on: ``query(sql,
params)`` for single statements and ``transaction(fn)`` for multi-statement
units of work. SQL uses positional ``?`` placeholders; they are rewritten to
SQLAlchemy bind parameters so the same strings run on any dialect.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import Connection, Engine, bindparam, text
from sqlmodel import SQLModel, create_engine

logger = logging.getLogger(__name__)

# Default to the configured server, fallback to SQLite for local development
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    "sqlite:///./database.db"
)

_engine: Engine | None = None

T = TypeVar("T")


def get_engine(echo: bool = False) -> Engine:
    """Get or create the database engine.

    Args:
        echo: Whether to echo SQL statements (for debugging)

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine
    if _engine is None:
        connect_args = {}
        if DATABASE_URL.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(DATABASE_URL, echo=echo, connect_args=connect_args)
    return _engine


def create_db_and_tables(engine: Optional[Engine] = None) -> None:
    """Create all tables declared as SQLModel table models."""
    SQLModel.metadata.create_all(engine or get_engine())


@asynccontextmanager
async def lifespan(app: Any):
    """FastAPI lifespan context manager for database setup/teardown.

    Args:
        app: FastAPI application instance
    """
    create_db_and_tables()
    yield
    logger.info("Shutting down, disposing database engine")
    get_engine().dispose()


class ExecuteResult(NamedTuple):
    """Outcome of a statement that returns no rows."""
    rowcount: int
    lastrowid: Optional[int]


def bind_positional(sql: str, params: Sequence[Any] = ()) -> Tuple[str, Dict[str, Any]]:
    """Rewrite ``?`` placeholders to ``:p0``, ``:p1``... outside quoted literals.

    Raises:
        ValueError: If the placeholder count differs from ``len(params)``.
    """
    parts: List[str] = []
    names: Dict[str, Any] = {}
    quote: Optional[str] = None
    index = 0
    for char in sql:
        if quote:
            if char == quote:
                quote = None
            parts.append(char)
        elif char in ("'", '"'):
            quote = char
            parts.append(char)
        elif char == "?":
            if index >= len(params):
                raise ValueError(f"Not enough parameters for SQL: {sql!r}")
            name = f"p{index}"
            names[name] = params[index]
            parts.append(f":{name}")
            index += 1
        else:
            parts.append(char)
    if index != len(params):
        raise ValueError(f"Expected {index} parameters, got {len(params)}")
    return "".join(parts), names


def _execute(connection: Connection, sql: str, params: Sequence[Any]):
    statement, values = bind_positional(sql, list(params or ()))
    clause = text(statement)
    if values:
        clause = clause.bindparams(*(bindparam(name, value) for name, value in values.items()))
    return connection.execute(clause)


def _rows(result) -> List[Dict[str, Any]]:
    if not result.returns_rows:
        return []
    return [dict(row) for row in result.mappings().all()]


class ConnectionHandle:
    """The ``query`` capability bound to one open connection (inside a transaction)."""

    def __init__(self, connection: Connection):
        self.connection = connection

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        return _rows(_execute(self.connection, sql, params))

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        result = _execute(self.connection, sql, params)
        return ExecuteResult(result.rowcount, result.lastrowid)


class Database:
    """Statement-level access to an engine.

    Each call outside :meth:`transaction` runs in its own short transaction
    and commits on success. Driver errors propagate unchanged.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine if engine is not None else get_engine()

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run ``sql`` and return its rows as dicts (``[]`` for non-SELECTs)."""
        with self.engine.begin() as connection:
            return ConnectionHandle(connection).query(sql, params)

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        with self.engine.begin() as connection:
            return ConnectionHandle(connection).execute(sql, params)

    def transaction(self, fn: Callable[[ConnectionHandle], T]) -> T:
        """Run ``fn`` in one transaction; commit on return, roll back on error."""
        with self.engine.begin() as connection:
            return fn(ConnectionHandle(connection))
