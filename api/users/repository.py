"""
User persistence helpers (raw SQL).

Store errors surface as `core.db.DatabaseError`; a duplicate email on insert
surfaces as `core.db.DuplicateKeyError` from the `users_email_key` constraint.
"""

from __future__ import annotations

from datetime import datetime

from core.db import Database, DatabaseError


async def get_user_id_by_email(database: Database, email: str) -> int | None:
    row = await database.fetch_one(
        """
        SELECT id
        FROM users
        WHERE email = $1
        """,
        email,
    )
    return int(row["id"]) if row is not None else None


async def create_user(
    database: Database,
    *,
    email: str,
    password_hash: str,
    name: str,
    age: int,
    created_at: datetime,
) -> dict:
    row = await database.fetch_one(
        """
        INSERT INTO users (email, password_hash, name, age, created_at)
        VALUES ($1, $2, $3, $4, $5)
        RETURNING id, email, name, age, created_at
        """,
        email,
        password_hash,
        name,
        age,
        created_at,
    )
    if row is None:
        raise DatabaseError("Insert returned no row.")
    return row


async def get_user_by_id(database: Database, user_id: int) -> dict | None:
    return await database.fetch_one(
        """
        SELECT id, email, name, age, created_at
        FROM users
        WHERE id = $1
        """,
        user_id,
    )
