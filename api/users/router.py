"""
User registration and lookup endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status

from core.db import Database, get_database

from . import schemas, service
from .errors import InvalidInput

router = APIRouter()

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": schemas.ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": schemas.ErrorResponse},
}


@router.post(
    "/users",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.UserCreatedResponse,
    responses={**_ERROR_RESPONSES, status.HTTP_409_CONFLICT: {"model": schemas.ErrorResponse}},
)
async def create_user(
    request: Request,
    database: Database = Depends(get_database),
) -> schemas.UserCreatedResponse:
    """
    Register a user from a JSON body: email, password, name, age.
    """
    # Read the body by hand so malformed JSON is a 400 with our error shape.
    try:
        body = await request.json()
    except (ValueError, RecursionError) as exc:
        raise InvalidInput("Invalid JSON") from exc
    return await service.register_user(database, body)


@router.get(
    "/users",
    response_model=schemas.UserResponse,
    responses={**_ERROR_RESPONSES, status.HTTP_404_NOT_FOUND: {"model": schemas.ErrorResponse}},
)
async def get_user(
    user_id: str = Query(default="", alias="id"),
    database: Database = Depends(get_database),
) -> schemas.UserResponse:
    return await service.get_user(database, user_id)
