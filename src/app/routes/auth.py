"""
Auth Routes: 가입/로그인/로그아웃/세션 상태.

- POST /api/auth/signup
- POST /api/auth/signin
- POST /api/auth/signout
- GET  /api/auth/session → 세션 복원 + 상태 요약

인증 성공 후 보류된 생성 요청은 같은 요청 안에서 1회 재실행한다.
재실행 실패는 로그인 실패가 아니므로 replay_error로 따로 돌려준다.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Form

from src.app.routes.deps import get_session, to_http_exception
from src.app.services.session import SessionReconciler
from src.domain.errors import StudioError

logger = logging.getLogger(__name__)

api_router = APIRouter()


async def _replay(reconciler: SessionReconciler) -> dict[str, Any]:
    """보류 요청 재실행 결과."""
    try:
        report = await reconciler.drain_replay()
    except StudioError as e:
        logger.warning(f"Replay after sign in failed: {e}")
        return {"replayed": None, "replay_error": e.to_dict()}
    return {
        "replayed": report.to_dict() if report else None,
        "replay_error": None,
    }


@api_router.post("/signup")
async def signup(
    email: str = Form(...),
    password: str = Form(...),
    name: str = Form(""),
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    """가입 (이메일 확인이 필요하면 confirmation_required=true)."""
    try:
        result = await reconciler.sign_up(email, password, name, replay=False)
    except StudioError as e:
        raise to_http_exception(e) from e

    payload: dict[str, Any] = {
        "confirmation_required": result.confirmation_required,
        "message": result.message,
    }
    if not result.confirmation_required:
        payload.update(await _replay(reconciler))
    payload["session"] = reconciler.snapshot()
    return payload


@api_router.post("/signin")
async def signin(
    email: str = Form(...),
    password: str = Form(...),
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    try:
        await reconciler.sign_in(email, password, replay=False)
    except StudioError as e:
        raise to_http_exception(e) from e

    payload = await _replay(reconciler)
    payload["session"] = reconciler.snapshot()
    return payload


@api_router.post("/signout")
async def signout(
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    await reconciler.sign_out()
    return {"session": reconciler.snapshot()}


@api_router.get("/session")
async def session_state(
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    """세션 복원 + 상태 요약 (원격 조회 실패는 remote_unreachable로 표시)."""
    try:
        await reconciler.restore(replay=False)
    except StudioError as e:
        raise to_http_exception(e) from e

    payload: dict[str, Any] = {}
    if reconciler.is_authenticated:
        payload.update(await _replay(reconciler))
    payload["session"] = reconciler.snapshot()
    return payload

