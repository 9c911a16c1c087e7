from __future__ import annotations

import os
from typing import Any

import pytest
from fastapi.testclient import TestClient

# Keep bcrypt fast in tests.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from core.db import DatabaseError, DuplicateKeyError
from main import create_app


def _normalize(sql: str) -> str:
    return " ".join(sql.split())


class FakeDatabase:
    """In-memory stand-in for `core.db.Database` covering the users queries."""

    def __init__(self) -> None:
        self.rows: dict[int, dict[str, Any]] = {}
        self.statements: list[str] = []
        self.connected = False
        self.closed = False
        # Statement prefix -> exception to raise instead of running it.
        self.failures: dict[str, Exception] = {}
        # Hide existing emails from the pre-insert check to simulate a race.
        self.skip_email_check = False
        self._next_id = 1

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.closed = True

    def fail(self, prefix: str, exc: Exception | None = None) -> None:
        self.failures[prefix] = exc or DatabaseError("connection reset by peer")

    def insert_count(self) -> int:
        return sum(1 for sql in self.statements if sql.startswith("INSERT INTO users"))

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        statement = _normalize(sql)
        self.statements.append(statement)
        for prefix, exc in self.failures.items():
            if statement.startswith(prefix):
                raise exc

        if statement.startswith("SELECT id FROM users WHERE email = $1"):
            if self.skip_email_check:
                return None
            for row in self.rows.values():
                if row["email"] == args[0]:
                    return {"id": row["id"]}
            return None

        if statement.startswith("INSERT INTO users"):
            email, password_hash, name, age, created_at = args
            if any(row["email"] == email for row in self.rows.values()):
                raise DuplicateKeyError('duplicate key value violates unique constraint "users_email_key"')
            row = {
                "id": self._next_id,
                "email": email,
                "password_hash": password_hash,
                "name": name,
                "age": age,
                "created_at": created_at,
            }
            self.rows[row["id"]] = row
            self._next_id += 1
            return {k: row[k] for k in ("id", "email", "name", "age", "created_at")}

        if statement.startswith("SELECT id, email, name, age, created_at FROM users WHERE id = $1"):
            row = self.rows.get(args[0])
            if row is None:
                return None
            return {k: row[k] for k in ("id", "email", "name", "age", "created_at")}

        raise AssertionError(f"Unexpected SQL: {statement}")


@pytest.fixture()
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def client(database: FakeDatabase):
    app = create_app(database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def valid_payload() -> dict[str, Any]:
    return {"email": "a@b.com", "password": "password123", "name": "Ann", "age": 30}
