"""
Pytest configuration for the CMS data-access layer.

Every test gets its own in-memory SQLite database with a ``playlist`` table
shaped like the CMS resource tables (soft delete flag, status, timestamps).
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, SQLModel, create_engine

from cmsdal.crud import CrudEngine
from cmsdal.db import Database, create_db_and_tables
from cmsdal.enums import EnumRegistry
from cmsdal.validator import RuleSpec, ValidationConfig


class Playlist(SQLModel, table=True):
    __tablename__ = "playlist"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    description: Optional[str] = None
    status: str = Field(default="DRAFT", sa_column_kwargs={"server_default": "DRAFT"})
    type: Optional[str] = None
    premium: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    sort: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    music_ids: Optional[str] = None
    is_deleted: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None


TEST_ENUMS = {
    "BizStatusEnums": {"datas": [
        {"enumName": "DRAFT"}, {"enumName": "ENABLED"}, {"enumName": "DISABLED"},
    ]},
    "BizPlaylistTypeEnums": {"datas": [
        {"enumName": "REGULAR"}, {"enumName": "YOGA"}, {"enumName": "DANCE"},
    ]},
}

PLAYLIST_RULES = {
    "playlist.create": {
        "name": [RuleSpec("required"), RuleSpec("string")],
        "status": [RuleSpec("required"), RuleSpec("enum_from_lib", ("BizStatusEnums",))],
        "type": [RuleSpec("optional", ("enum_from_lib", "BizPlaylistTypeEnums"))],
        "premium": [RuleSpec("optional", ("integer", 0, 1))],
    },
    "playlist.update": {
        "name": [RuleSpec("string")],
        "status": [RuleSpec("enum_from_lib", ("BizStatusEnums",))],
    },
}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Database:
    return Database(engine)


@pytest.fixture
def enums() -> EnumRegistry:
    return EnumRegistry(TEST_ENUMS)


@pytest.fixture
def crud(db, enums) -> CrudEngine:
    return CrudEngine(db, validation=ValidationConfig(PLAYLIST_RULES, enums=enums), enums=enums)


@pytest.fixture
def add_playlist(db):
    """Insert a playlist row directly and return its id."""
    def _add(**columns: Any) -> int:
        row: Dict[str, Any] = {"status": "ENABLED", "is_deleted": 0,
                               "create_time": datetime(2024, 5, 1, 9, 30, 0)}
        row.update(columns)
        names = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        return db.execute(f"INSERT INTO playlist ({names}) VALUES ({placeholders})", list(row.values())).lastrowid
    return _add
