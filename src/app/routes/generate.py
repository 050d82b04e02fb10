"""
Generate Routes: 파일/프롬프트 → artifact 생성.

- POST /api/generate (multipart: prompt, file?)

익명 사용자의 요청은 버리지 않고 보류 → 401 + pending=true.
로그인에 성공하면 /api/auth/signin 응답 안에서 1회 재실행된다.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from src.app.routes.deps import get_session, to_http_exception
from src.app.services.session import AUTH_REQUIRED_MESSAGE, SessionReconciler
from src.domain.constants import get_mime_type
from src.domain.errors import ErrorCodes, StudioError
from src.domain.schemas import GenerationRequest

logger = logging.getLogger(__name__)

api_router = APIRouter()


@api_router.post("")
async def generate_artifact(
    prompt: str = Form(""),
    file: UploadFile | None = File(None),
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    """
    artifact 생성 요청.

    Returns:
        생성 결과 (artifact_id, saved, active, run_id, warning) + 세션 상태

    Raises:
        HTTPException 401: 로그인 필요 (요청은 보류됨)
    """
    file_bytes: bytes | None = None
    mime_type: str | None = None
    filename: str | None = None
    if file is not None and file.filename:
        file_bytes = await file.read()
        filename = file.filename
        mime_type = file.content_type or get_mime_type(filename)

    request = GenerationRequest(
        prompt=prompt,
        file_bytes=file_bytes or None,
        mime_type=mime_type,
        filename=filename,
    )

    try:
        report = await reconciler.request_generation(request)
    except StudioError as e:
        raise to_http_exception(e) from e

    if report is None:
        raise HTTPException(
            status_code=401,
            detail={
                "code": ErrorCodes.AUTH_REQUIRED,
                "message": AUTH_REQUIRED_MESSAGE,
                "pending": True,
            },
        )

    if not report.saved:
        logger.warning(f"Artifact {report.artifact.id} generated but not saved")

    return {**report.to_dict(), "session": reconciler.snapshot()}
