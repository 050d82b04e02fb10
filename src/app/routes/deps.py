"""
Route 공통: 세션 쿠키 → SessionReconciler, StudioError → HTTPException.
"""

from fastapi import HTTPException, Request, Response

from src.app.services.session import SessionReconciler, SessionRegistry
from src.core.ids import generate_session_id
from src.domain.constants import SESSION_COOKIE_NAME
from src.domain.errors import (
    AuthenticationError,
    GenerationError,
    GenerationInProgressError,
    InputValidationError,
    PermissionDeniedError,
    PersistenceError,
    QuotaExceededError,
    RemoteUnavailableError,
    StudioError,
)

# 에러 분류 → HTTP 상태 (위에서부터 먼저 맞는 것)
_STATUS_BY_ERROR: tuple[tuple[type[StudioError], int], ...] = (
    (InputValidationError, 400),
    (AuthenticationError, 401),
    (PermissionDeniedError, 403),
    (QuotaExceededError, 403),
    (GenerationInProgressError, 409),
    (GenerationError, 502),
    (PersistenceError, 502),
    (RemoteUnavailableError, 503),
)


def to_http_exception(error: StudioError) -> HTTPException:
    status_code = 500
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = status
            break
    return HTTPException(status_code=status_code, detail=error.to_dict())


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        session_id,
        httponly=True,
        samesite="lax",
    )


def open_session(request: Request) -> tuple[SessionReconciler, str | None]:
    """
    쿠키의 세션을 찾고, 없으면 새로 만든다.

    Returns:
        (reconciler, 새로 발급한 session_id 또는 None)
    """
    registry: SessionRegistry = request.app.state.sessions
    reconciler = registry.get(request.cookies.get(SESSION_COOKIE_NAME))
    if reconciler is not None:
        return reconciler, None
    session_id = generate_session_id()
    return registry.create(session_id), session_id


async def get_session(request: Request, response: Response) -> SessionReconciler:
    """Dependency: JSON API용 (새 세션이면 쿠키 설정)."""
    reconciler, new_session_id = open_session(request)
    if new_session_id is not None:
        set_session_cookie(response, new_session_id)
    return reconciler

