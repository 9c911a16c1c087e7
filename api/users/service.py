"""
User registration and lookup business logic.

Validation runs in a fixed order and stops at the first failure, so a client
always sees the earliest problem with its payload. Nothing touches the store
until validation has passed.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from core.db import Database, DatabaseError, DuplicateKeyError

from . import repository, schemas, security
from .errors import Conflict, InvalidInput, NotFound, StorageFailure

MIN_PASSWORD_LENGTH = 8
MIN_AGE = 18
MAX_AGE = 120

# users.id is a BIGSERIAL.
MAX_USER_ID = 2**63 - 1

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")

INTERNAL_ERROR = "Internal server error"
CREATE_FAILED = "Failed to create user"
DUPLICATE_EMAIL = "User with this email already exists"

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_create_request(body: Any) -> schemas.CreateUserRequest:
    # A bare `null` body carries no fields.
    if body is None:
        body = {}
    try:
        return schemas.CreateUserRequest.model_validate(body)
    except ValidationError as exc:
        raise InvalidInput("Invalid JSON") from exc


def validate_create_request(payload: schemas.CreateUserRequest) -> None:
    if EMAIL_PATTERN.fullmatch(payload.email) is None:
        raise InvalidInput("Invalid email format")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not payload.name.strip():
        raise InvalidInput("Name is required")
    if payload.age < MIN_AGE or payload.age > MAX_AGE:
        raise InvalidInput(f"Age must be between {MIN_AGE} and {MAX_AGE}")


def parse_user_id(raw: str | None) -> int:
    text = (raw or "").strip()
    if not text:
        raise InvalidInput("User ID is required")
    try:
        return int(text, 10)
    except ValueError as exc:
        raise InvalidInput("User ID must be an integer") from exc


def _to_user_response(
    user_row: dict,
    response_cls: type[schemas.UserResponse] = schemas.UserResponse,
) -> schemas.UserResponse:
    return response_cls(
        id=int(user_row["id"]),
        email=str(user_row["email"]),
        name=str(user_row["name"]),
        age=int(user_row["age"]),
        created_at=user_row["created_at"],
    )


async def register_user(database: Database, body: Any) -> schemas.UserCreatedResponse:
    payload = parse_create_request(body)
    validate_create_request(payload)

    try:
        existing_id = await repository.get_user_id_by_email(database, payload.email)
    except DatabaseError as exc:
        logger.exception("user_email_check_failed")
        raise StorageFailure(INTERNAL_ERROR) from exc
    if existing_id is not None:
        raise Conflict(DUPLICATE_EMAIL)

    password_hash = await run_in_threadpool(security.hash_password, payload.password)

    try:
        user_row = await repository.create_user(
            database,
            email=payload.email,
            password_hash=password_hash,
            name=payload.name.strip(),
            age=payload.age,
            created_at=_utc_now(),
        )
    except DuplicateKeyError as exc:
        # Another request registered the same email after our check.
        logger.info("user_create_conflict")
        raise Conflict(DUPLICATE_EMAIL) from exc
    except DatabaseError as exc:
        logger.exception("user_create_failed")
        raise StorageFailure(CREATE_FAILED) from exc

    user = _to_user_response(user_row, schemas.UserCreatedResponse)
    logger.info("user_created user_id=%s", user.id)
    return user


async def get_user(database: Database, raw_user_id: str | None) -> schemas.UserResponse:
    user_id = parse_user_id(raw_user_id)
    if user_id < 1 or user_id > MAX_USER_ID:
        raise NotFound("User not found")

    try:
        user_row = await repository.get_user_by_id(database, user_id)
    except DatabaseError as exc:
        logger.exception("user_lookup_failed user_id=%s", user_id)
        raise StorageFailure(INTERNAL_ERROR) from exc
    if user_row is None:
        raise NotFound("User not found")

    return _to_user_response(user_row)
