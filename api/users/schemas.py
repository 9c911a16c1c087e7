"""
User API schemas (request/response models).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, StrictInt, StrictStr, ValidationInfo, field_serializer, field_validator

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


def format_timestamp(value: datetime) -> str:
    """
    RFC 3339 at second precision; naive values are taken as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


class CreateUserRequest(BaseModel):
    # Absent or null fields default to zero values and fail the ordered checks
    # in `service.validate_create_request`. Wrong JSON types fail decoding.
    email: StrictStr = ""
    password: StrictStr = ""
    name: StrictStr = ""
    age: StrictInt = 0

    @field_validator("*", mode="before")
    @classmethod
    def _null_is_zero_value(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("email", "password", "name")
    @classmethod
    def _replace_lone_surrogates(cls, value: str) -> str:
        # JSON can escape an unpaired surrogate; UTF-8 cannot encode one.
        return _LONE_SURROGATE.sub("\ufffd", value)


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    age: int
    created_at: datetime

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        return format_timestamp(value)


class UserCreatedResponse(UserResponse):
    message: str = "User created successfully"


class ErrorResponse(BaseModel):
    error: str
