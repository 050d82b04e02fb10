"""
Admin Routes: 관리자 전용 사용자 관리.

- GET    /api/admin/users
- POST   /api/admin/users/{account_id}/plan → free ↔ pro 토글
- DELETE /api/admin/users/{account_id}

관리자 판정 전에 profile을 다시 읽는다 (원격 조회 실패 시 거절).
"""

from typing import Any

from fastapi import APIRouter, Depends, Request

from src.app.routes.deps import get_session, to_http_exception
from src.app.services.admin import AdminService
from src.app.services.auth import REMOTE_UNAVAILABLE_MESSAGE
from src.app.services.session import SessionReconciler
from src.domain.errors import ErrorCodes, RemoteUnavailableError, StudioError
from src.domain.schemas import Account

api_router = APIRouter()


async def _admin_context(
    request: Request, reconciler: SessionReconciler
) -> tuple[AdminService, Account | None]:
    if reconciler.is_authenticated and not await reconciler.refresh():
        raise to_http_exception(
            RemoteUnavailableError(ErrorCodes.REMOTE_UNAVAILABLE, REMOTE_UNAVAILABLE_MESSAGE)
        )
    service = AdminService(
        reconciler.backend,
        request.app.state.config,
        clock=reconciler.clock,
    )
    return service, reconciler.current_account


def _account_row(account: Account) -> dict[str, Any]:
    row = account.to_dict()
    row["is_admin"] = account.is_admin
    return row


@api_router.get("/users")
async def list_users(
    request: Request,
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    service, actor = await _admin_context(request, reconciler)
    try:
        accounts = await service.list_users(actor)
    except StudioError as e:
        raise to_http_exception(e) from e
    return {"users": [_account_row(a) for a in accounts]}


@api_router.post("/users/{account_id}/plan")
async def toggle_plan(
    account_id: str,
    request: Request,
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    service, actor = await _admin_context(request, reconciler)
    try:
        account = await service.toggle_plan(actor, account_id)
    except StudioError as e:
        raise to_http_exception(e) from e

    if account_id == reconciler.account_id:
        await reconciler.refresh()
    return {"user": _account_row(account)}


@api_router.delete("/users/{account_id}")
async def delete_user(
    account_id: str,
    request: Request,
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    service, actor = await _admin_context(request, reconciler)
    try:
        await service.delete_user(actor, account_id)
    except StudioError as e:
        raise to_http_exception(e) from e
    return {"deleted": account_id}
