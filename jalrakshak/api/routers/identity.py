from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from jalrakshak.api.deps import get_current_claims, require_perm
from jalrakshak.domain.models import (
    BootstrapAdminRequest,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserCreate,
    UserProfileUpdate,
    UserRead,
    UserRole,
    UtilityCreate,
    UtilityRead,
)
from jalrakshak.domain.permissions import PERM_IDENTITY_READ, PERM_IDENTITY_WRITE
from jalrakshak.infra.audit import set_audit_context
from jalrakshak.infra.auth import create_access_token
from jalrakshak.services.identity_service import AuthError, ConflictError, IdentityService, NotFoundError

router = APIRouter()


def get_identity_service() -> IdentityService:
    return IdentityService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[IdentityService, Depends(get_identity_service)]


def _handle_identity_error(exc: Exception) -> None:
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, AuthError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    raise exc


@router.post("/utilities", response_model=UtilityRead, status_code=status.HTTP_201_CREATED)
def create_utility(payload: UtilityCreate, service: Service) -> UtilityRead:
    try:
        utility = service.create_utility(payload)
        return UtilityRead.model_validate(utility)
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.get(
    "/utilities/{utility_id}",
    response_model=UtilityRead,
    dependencies=[Depends(require_perm(PERM_IDENTITY_READ))],
)
def get_utility(utility_id: str, claims: Claims, service: Service) -> UtilityRead:
    if claims["utility_id"] != utility_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="utility not found")
    try:
        return UtilityRead.model_validate(service.get_utility(utility_id))
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.post("/bootstrap-admin", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def bootstrap_admin(payload: BootstrapAdminRequest, service: Service) -> UserRead:
    try:
        user = service.bootstrap_admin(payload)
        return UserRead.model_validate(user)
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, service: Service) -> UserRead:
    try:
        user = service.register_citizen(payload)
        return UserRead.model_validate(user)
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, service: Service) -> TokenResponse:
    try:
        user, permissions = service.login(payload.utility_id, payload.email, payload.password)
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise
    token = create_access_token(
        user_id=user.id,
        utility_id=user.utility_id,
        role=user.role,
        permissions=permissions,
    )
    return TokenResponse(access_token=token, role=user.role, permissions=permissions)


@router.get("/me", response_model=UserRead)
def get_me(claims: Claims, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(claims["utility_id"], claims["sub"]))
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.patch("/me", response_model=UserRead)
def update_me(payload: UserProfileUpdate, claims: Claims, service: Service) -> UserRead:
    try:
        user = service.update_profile(claims["utility_id"], claims["sub"], payload)
        return UserRead.model_validate(user)
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.post(
    "/users",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_IDENTITY_WRITE))],
)
def create_user(payload: UserCreate, claims: Claims, service: Service) -> UserRead:
    try:
        user = service.create_user(claims["utility_id"], payload)
        return UserRead.model_validate(user)
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.get(
    "/users",
    response_model=list[UserRead],
    dependencies=[Depends(require_perm(PERM_IDENTITY_READ))],
)
def list_users(claims: Claims, service: Service, role: UserRole | None = None) -> list[UserRead]:
    rows = service.list_users(claims["utility_id"], role=role)
    return [UserRead.model_validate(item) for item in rows]


@router.get(
    "/users/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_IDENTITY_READ))],
)
def get_user(user_id: str, claims: Claims, service: Service) -> UserRead:
    try:
        return UserRead.model_validate(service.get_user(claims["utility_id"], user_id))
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.post(
    "/users/{user_id}/deactivate",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_IDENTITY_WRITE))],
)
def deactivate_user(user_id: str, request: Request, claims: Claims, service: Service) -> UserRead:
    set_audit_context(request, action="identity.user.deactivate", detail={"what": {"user_id": user_id}})
    try:
        return UserRead.model_validate(service.set_active(claims["utility_id"], user_id, False))
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise


@router.post(
    "/users/{user_id}/activate",
    response_model=UserRead,
    dependencies=[Depends(require_perm(PERM_IDENTITY_WRITE))],
)
def activate_user(user_id: str, request: Request, claims: Claims, service: Service) -> UserRead:
    set_audit_context(request, action="identity.user.activate", detail={"what": {"user_id": user_id}})
    try:
        return UserRead.model_validate(service.set_active(claims["utility_id"], user_id, True))
    except (NotFoundError, ConflictError, AuthError) as exc:
        _handle_identity_error(exc)
        raise
