from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core import settings
from core.db import Database
from core.log import configure_logging
from users import router as users_router
from users import schemas as users_schemas
from users.errors import UserServiceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pool per process, owned by the app.
    database = app.state.database
    await database.connect()
    try:
        yield
    finally:
        await database.close()


async def _user_service_error_handler(_: Request, exc: UserServiceError) -> JSONResponse:
    body = users_schemas.ErrorResponse(error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = users_schemas.ErrorResponse(error=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=exc.headers)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error path=%s", request.url.path, exc_info=exc)
    body = users_schemas.ErrorResponse(error="Internal server error")
    return JSONResponse(status_code=500, content=body.model_dump())


def create_app(*, database: Database | None = None) -> FastAPI:
    configure_logging()

    app = FastAPI(title="User Registration API", lifespan=lifespan)
    app.state.database = database if database is not None else Database()

    # Allow local frontend dev server to call this API from the browser.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(UserServiceError, _user_service_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(users_router.router, tags=["users"])

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/")
    def root() -> dict:
        return {"message": "user registration api"}

    return app


app = create_app()
