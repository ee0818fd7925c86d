"""HTTP API for browsing and editing the user registry."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import RosterConfig, env_flag, load_config
from .errors import PersistenceError
from .models import User
from .store import RecordStore
from .view import SortDirection, ViewParams, derive_view

logger = logging.getLogger("roster.service")

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class UserPayload(BaseModel):
    name: str = Field(..., min_length=2, max_length=20)
    email: str = Field(..., max_length=30, pattern=EMAIL_PATTERN)
    age: int = Field(..., ge=0, le=120)


class UserResponse(BaseModel):
    id: int
    name: Optional[str]
    email: Optional[str]
    age: Optional[int]
    created_at: Optional[datetime]


class UserViewResponse(BaseModel):
    filtered_count: int
    total_count: int
    total_pages: int
    page: int
    page_size: int
    page_size_options: List[int]
    users: List[UserResponse]


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        age=user.age,
        created_at=user.created_at,
    )


def register_api_routes(app: FastAPI, store: RecordStore, config: RosterConfig) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc)},
        )

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/v1/users", response_model=UserViewResponse)
    async def list_users(
        search: str = Query(default="", max_length=100),
        creation_order: SortDirection = SortDirection.ASC,
        age_order: SortDirection = SortDirection.ASC,
        name_order: SortDirection = SortDirection.ASC,
        page: int = 1,
        page_size: int = Query(default=config.page_size, ge=1),
    ) -> UserViewResponse:
        params = ViewParams(
            search_term=search,
            creation_order=creation_order,
            age_order=age_order,
            name_order=name_order,
            current_page=page,
            page_size=page_size,
        )
        view = derive_view(await store.list_all(), params)
        return UserViewResponse(
            filtered_count=view.filtered_count,
            total_count=view.total_count,
            total_pages=view.total_pages,
            page=view.current_page,
            page_size=view.page_size,
            page_size_options=list(config.page_size_options),
            users=[_user_to_response(user) for user in view.page_items],
        )

    @app.get("/v1/users/{user_id}", response_model=UserResponse)
    async def get_user(user_id: int) -> UserResponse:
        user = await store.get(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return _user_to_response(user)

    @app.post("/v1/users", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
    async def create_user(request: UserPayload) -> UserResponse:
        created = await store.create(User(name=request.name, email=request.email, age=request.age))
        logger.info("User %s created via API", created.id)
        return _user_to_response(created)

    @app.put("/v1/users/{user_id}", response_model=UserResponse)
    async def update_user(user_id: int, request: UserPayload) -> UserResponse:
        stored = await store.update(
            User(id=user_id, name=request.name, email=request.email, age=request.age)
        )
        logger.info("User %s updated via API", user_id)
        return _user_to_response(stored)

    @app.delete("/v1/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_user(user_id: int) -> Response:
        await store.delete(user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


def create_app(
    *,
    store: RecordStore | None = None,
    config: RosterConfig | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the registry."""

    settings = config or load_config()
    record_store = store or RecordStore.at_path(settings.database_path)

    enable_docs = env_flag(os.getenv("ROSTER_ENABLE_DOCS"), True)
    app = FastAPI(
        title="Roster User Registry",
        version="0.1.0",
        description="Local user registry with search, sorting and pagination.",
        docs_url="/docs" if enable_docs else None,
        redoc_url=None,
        openapi_url="/openapi.json" if enable_docs else None,
    )
    app.state.store = record_store
    app.state.config = settings

    register_api_routes(app, record_store, settings)
    return app


__all__ = ["create_app", "register_api_routes"]
