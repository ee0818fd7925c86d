from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import pytest

from roster.database import Database, resolve_database_path
from roster.models import User


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "roster.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def test_initialize_is_idempotent(tmp_path: Path) -> None:
    db = Database(tmp_path / "nested" / "roster.sqlite3")
    db.initialize()
    db.insert_user(User(name="Ana", email="ana@example.com", age=25))
    db.initialize()

    assert db.count_users() == 1


def test_insert_assigns_identity_and_timestamp(database: Database) -> None:
    first = database.insert_user(User(name="Ana", email="ana@example.com", age=25))
    second = database.insert_user(User(name="Beto", email="beto@example.com", age=30))

    assert first.id is not None and second.id is not None
    assert first.id != second.id
    assert first.created_at is not None and second.created_at is not None
    assert first.created_at <= second.created_at


def test_insert_ignores_incoming_id(database: Database) -> None:
    original = database.insert_user(User(name="Ana", email="ana@example.com", age=25))
    copy = database.insert_user(original)

    assert copy.id != original.id
    assert database.count_users() == 2


def test_insert_does_not_validate_fields(database: Database) -> None:
    stored = database.insert_user(User(name=None, email="not-an-email", age=500))

    assert database.get_user(stored.id) == stored


def test_put_replaces_fields_and_keeps_created_at(database: Database) -> None:
    created = database.insert_user(User(name="Ana", email="ana@example.com", age=25))

    replacement = User(id=created.id, name="Ana Maria", email="am@example.com", age=26)
    stored = database.put_user(replacement)

    assert stored.name == "Ana Maria"
    assert stored.email == "am@example.com"
    assert stored.age == 26
    assert stored.created_at == created.created_at


def test_put_cannot_move_created_at(database: Database) -> None:
    created = database.insert_user(User(name="Ana", email="ana@example.com", age=25))
    later = datetime(2030, 1, 1, tzinfo=timezone.utc)

    stored = database.put_user(
        User(id=created.id, name="Ana", email="ana@example.com", age=25, created_at=later)
    )

    assert stored.created_at == created.created_at


def test_put_inserts_when_missing(database: Database) -> None:
    stored = database.put_user(User(id=100, name="Carla", email="carla@example.com", age=20))

    assert stored.id == 100
    assert stored.created_at is not None
    assert database.get_user(100) == stored

    following = database.insert_user(User(name="Dani", email="dani@example.com", age=40))
    assert following.id > 100


def test_put_requires_identity(database: Database) -> None:
    with pytest.raises(ValueError):
        database.put_user(User(name="Ana", email="ana@example.com", age=25))


def test_delete_reports_whether_a_row_was_removed(database: Database) -> None:
    created = database.insert_user(User(name="Ana", email="ana@example.com", age=25))

    assert database.delete_user(created.id) is True
    assert database.delete_user(created.id) is False
    assert database.get_user(created.id) is None
    assert database.list_users() == []


def test_resolve_database_path_prefers_env_value(tmp_path: Path) -> None:
    explicit = resolve_database_path(str(tmp_path / "custom.sqlite3"))
    assert explicit == (tmp_path / "custom.sqlite3").resolve()

    default = resolve_database_path(None)
    assert default.name == "roster.sqlite3"
    assert default.parent.name == "data"


def test_created_at_strictly_increases_on_a_frozen_clock(
    database: Database, monkeypatch: pytest.MonkeyPatch
) -> None:
    frozen = datetime(2024, 1, 1, tzinfo=timezone.utc)
    monkeypatch.setattr("roster.database._current_timestamp", lambda: frozen)

    stamps = [
        database.insert_user(User(name=name, email=None, age=30)).created_at
        for name in ("Ana", "Beto", "Carla")
    ]

    assert stamps[0] == frozen
    assert stamps[0] < stamps[1] < stamps[2]
    assert [user.created_at for user in database.list_users()] == stamps


def test_failed_statement_rolls_back_the_whole_transaction(database: Database) -> None:
    database.insert_user(User(name="Ana", email="ana@example.com", age=25))

    with pytest.raises(sqlite3.Error):
        with database._transaction() as conn:
            conn.execute(
                "INSERT INTO users (name, email, age, created_at) VALUES (?, ?, ?, ?)",
                ("Beto", "beto@example.com", 30, None),
            )
            conn.execute("SELECT * FROM missing_table")

    assert [user.name for user in database.list_users()] == ["Ana"]


def test_non_datetime_created_at_is_rejected_before_writing(database: Database) -> None:
    with pytest.raises(TypeError):
        database.insert_user(User(name="Ana", email=None, age=25, created_at="2024-01-01"))  # type: ignore[arg-type]

    assert database.count_users() == 0
