# forexhub/routers/users.py
"""
User accounts.

POST /v1/users          - Register (always as a viewer)
POST /v1/auth/login     - Check credentials, stamp last login

Admin (X-API-Key):
GET /v1/admin/users, GET/PATCH/DELETE /v1/admin/users/{id}

Password hashes never leave the storage layer: every response is a UserPublic.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from forexhub.auth import require_admin_key
from forexhub.routers.deps import (
    ReadResult,
    get_selector,
    get_storage,
    item_response,
    pagination_params,
    read_with_fallback,
)
from forexhub.schemas.common import ItemResponse, PageResponse
from forexhub.schemas.users import LoginRequest, User, UserCreate, UserFilters, UserPublic, UserRole, UserUpdate
from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import NotFoundError
from forexhub.storage.pagination import PaginationOptions
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])
admin_router = APIRouter(prefix="/v1/admin/users", tags=["admin"], dependencies=[Depends(require_admin_key)])


def _public(user: User) -> UserPublic:
    return UserPublic.model_validate(user)


def _public_page(result: ReadResult) -> PageResponse[UserPublic]:
    page = result.value
    return PageResponse[UserPublic](
        **page.model_dump(exclude={"data"}),
        data=[_public(u) for u in page.data],
        **result.info,
    )


@router.post("/v1/users", response_model=ItemResponse[UserPublic], status_code=201)
async def register(payload: UserCreate, storage: StorageAdapter = Depends(get_storage)):
    user = await storage.users.create(payload.model_copy(update={"role": UserRole.VIEWER.value}))
    logger.info(f"Registered user {user.id}", extra={"event": "user_registered", "entity": "user", "entity_id": user.id})
    return item_response(_public(user), storage)


@router.post("/v1/auth/login", response_model=ItemResponse[UserPublic])
async def login(payload: LoginRequest, storage: StorageAdapter = Depends(get_storage)):
    user = await storage.users.authenticate(payload.email, payload.password)
    if user is None:
        logger.warning("Failed login attempt", extra={"event": "login_failed", "entity": "user"})
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return item_response(_public(user), storage)


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------


@admin_router.get("", response_model=PageResponse[UserPublic])
async def list_users(
    role: UserRole | None = Query(None),
    q: str | None = Query(None, description="Search email and username"),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = UserFilters(role=role)
    if q is not None:
        return _public_page(await read_with_fallback(selector, lambda a: a.users.search(q, pagination, filters)))
    return _public_page(await read_with_fallback(selector, lambda a: a.users.list(pagination, filters)))


@admin_router.get("/{user_id}", response_model=ItemResponse[UserPublic])
async def get_user(user_id: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.users.get_by_id(user_id))
    if result.value is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return ItemResponse(data=_public(result.value), **result.info)


@admin_router.patch("/{user_id}", response_model=ItemResponse[UserPublic])
async def update_user(user_id: str, payload: UserUpdate, storage: StorageAdapter = Depends(get_storage)):
    return item_response(_public(await storage.users.update(user_id, payload)), storage)


@admin_router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: str, storage: StorageAdapter = Depends(get_storage)) -> None:
    """Posts, comments and reviews by the user are kept with their author cleared."""
    if not await storage.users.delete(user_id):
        raise NotFoundError("user", user_id)
