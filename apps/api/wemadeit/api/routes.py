from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from wemadeit.auth.schemas import LoginRequest, LoginResponse, UserRead, UserWrite
from wemadeit.auth.service import session_service, user_service
from wemadeit.core.auth import AuthUser, get_current_user, require_admin
from wemadeit.core.config import get_settings
from wemadeit.core.database import get_db
from wemadeit.core.ui_settings import UiSettingsStore, UiSettingsUpdate, get_ui_settings_store
from wemadeit.crm.api import (
    contacts_router,
    deals_router,
    error_response,
    interactions_router,
    organizations_router,
    parse_id_list,
    payments_router,
    pipelines_router,
    projects_router,
    quotations_router,
    state_router,
    tasks_router,
)
from wemadeit.crm.schemas import DeleteResult
from wemadeit.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
router.include_router(organizations_router)
router.include_router(contacts_router)
router.include_router(pipelines_router)
router.include_router(deals_router)
router.include_router(payments_router)
router.include_router(projects_router)
router.include_router(tasks_router)
router.include_router(quotations_router)
router.include_router(interactions_router)
router.include_router(state_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics() -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())


@router.post("/api/login", response_model=LoginResponse, tags=["auth"])
def login(request: Request, dto: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse | JSONResponse:
    context = getattr(request.state, "context", None)
    try:
        return session_service.login(
            db,
            dto,
            user_agent=request.headers.get("user-agent"),
            ip_address=getattr(context, "client_ip", None),
        )
    except HTTPException as exc:
        return error_response(
            request,
            status_code=exc.status_code,
            code="auth_login_failed",
            message=str(exc.detail),
            details=exc.detail,
        )


@router.post("/api/logout", tags=["auth"])
def logout(
    request: Request,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> dict[str, bool]:
    session_service.logout(db, user.token)
    return {"ok": True}


@router.get("/api/me", tags=["auth"])
def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str]:
    return {
        "id": user.sub,
        "email_address": user.email_address,
        "name": user.name,
        "role": user.role,
    }


@router.get("/api/users", response_model=list[UserRead], tags=["auth.users"])
def list_users(
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_admin),
) -> list[UserRead]:
    return user_service.list_users(db)


@router.get("/api/users/{user_id}", response_model=UserRead, tags=["auth.users"])
def get_user(
    request: Request,
    user_id: str,
    db: Session = Depends(get_db),
    _user: AuthUser = Depends(require_admin),
) -> UserRead | JSONResponse:
    try:
        return user_service.get_user(db, user_id)
    except HTTPException as exc:
        return error_response(
            request,
            status_code=exc.status_code,
            code="auth_user_get_failed",
            message=str(exc.detail),
            details=exc.detail,
        )


@router.post("/api/users", response_model=UserRead, tags=["auth.users"])
def put_user(
    request: Request,
    dto: UserWrite,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_admin),
) -> UserRead | JSONResponse:
    try:
        return user_service.put_user(db, user.sub, dto)
    except HTTPException as exc:
        return error_response(
            request,
            status_code=exc.status_code,
            code="auth_user_put_failed",
            message=str(exc.detail),
            details=exc.detail,
        )


def _delete_users(request: Request, db: Session, user: AuthUser, user_ids: list[str]) -> DeleteResult | JSONResponse:
    deleted: list[str] = []
    try:
        for user_id in user_ids:
            if user_id == user.sub:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="cannot delete your own user")
            user_service.delete_user(db, user.sub, user_id)
            deleted.append(user_id)
    except HTTPException as exc:
        return error_response(
            request,
            status_code=exc.status_code,
            code="auth_user_delete_failed",
            message=str(exc.detail),
            details=exc.detail,
        )
    return DeleteResult(deleted=deleted)


@router.delete("/api/users", response_model=DeleteResult, tags=["auth.users"])
def delete_users(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_admin),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return error_response(
            request,
            status_code=exc.status_code,
            code="auth_user_delete_failed",
            message=str(exc.detail),
            details=exc.detail,
        )
    return _delete_users(request, db, user, targets)


@router.delete("/api/users/{user_id}", response_model=DeleteResult, tags=["auth.users"])
def delete_user(
    request: Request,
    user_id: str,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_admin),
) -> DeleteResult | JSONResponse:
    return _delete_users(request, db, user, [user_id])


@router.get("/api/settings", tags=["settings"])
def get_ui_settings(
    store: UiSettingsStore = Depends(get_ui_settings_store),
    _user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    return store.snapshot().public_view()


@router.post("/api/settings", tags=["settings"])
def update_ui_settings(
    dto: UiSettingsUpdate,
    store: UiSettingsStore = Depends(get_ui_settings_store),
    _user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    return store.update(dto).public_view()
