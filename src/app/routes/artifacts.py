"""
Artifact Routes: 히스토리 조회/선택/삭제, import/export, sandbox 미리보기.

- GET    /api/artifacts
- GET    /api/artifacts/{artifact_id}
- POST   /api/artifacts/{artifact_id}/select
- DELETE /api/artifacts/{artifact_id}
- GET    /api/artifacts/{artifact_id}/export
- GET    /api/artifacts/{artifact_id}/preview
- POST   /api/artifacts/import
- POST   /api/artifacts/reset

미리보기는 CSP sandbox 헤더로만 서빙 (allow-same-origin 없음 → 앱 쿠키 접근 불가).
"""

from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import HTMLResponse, Response

from src.app.routes.deps import get_session, to_http_exception
from src.app.services.session import SessionReconciler
from src.domain.constants import PREVIEW_CSP
from src.domain.errors import StudioError
from src.domain.schemas import Artifact

api_router = APIRouter()


def _summary(artifact: Artifact, active_id: str | None) -> dict[str, Any]:
    return {
        "id": artifact.id,
        "name": artifact.name,
        "created_at": artifact.created_at.isoformat(),
        "has_original": artifact.original_input is not None,
        "active": artifact.id == active_id,
    }


def _lookup(reconciler: SessionReconciler, artifact_id: str) -> Artifact:
    try:
        return reconciler.get_artifact(artifact_id)
    except StudioError as e:
        raise HTTPException(status_code=404, detail=e.to_dict()) from e


@api_router.get("")
async def list_artifacts(
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    """히스토리 (최신순)."""
    active_id = reconciler.history.active_id
    return {
        "items": [_summary(a, active_id) for a in reconciler.history.items],
        "active_id": active_id,
        "stale": reconciler.history.is_stale,
    }


@api_router.post("/import")
async def import_artifact(
    file: UploadFile = File(...),
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    """export JSON import → 저장 후 active."""
    content = await file.read()
    try:
        artifact = await reconciler.import_artifact(content)
    except StudioError as e:
        raise to_http_exception(e) from e
    return {"artifact": _summary(artifact, reconciler.history.active_id)}


@api_router.post("/reset")
async def reset_workspace(
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    """active 해제 (진행 중 생성 결과는 active가 되지 않음)."""
    reconciler.reset()
    return {"session": reconciler.snapshot()}


@api_router.get("/{artifact_id}")
async def get_artifact(
    artifact_id: str,
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    artifact = _lookup(reconciler, artifact_id)
    return {
        **_summary(artifact, reconciler.history.active_id),
        "html": artifact.html,
        "original_input": artifact.original_input,
    }


@api_router.post("/{artifact_id}/select")
async def select_artifact(
    artifact_id: str,
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    try:
        artifact = reconciler.select(artifact_id)
    except StudioError as e:
        raise HTTPException(status_code=404, detail=e.to_dict()) from e
    return {"artifact": _summary(artifact, reconciler.history.active_id)}


@api_router.delete("/{artifact_id}")
async def delete_artifact(
    artifact_id: str,
    reconciler: SessionReconciler = Depends(get_session),
) -> dict[str, Any]:
    """삭제 (없는 id는 removed=false, 에러 아님)."""
    try:
        removed = await reconciler.delete_artifact(artifact_id)
    except StudioError as e:
        raise to_http_exception(e) from e
    return {"removed": removed, "session": reconciler.snapshot()}


@api_router.get("/{artifact_id}/export")
async def export_artifact(
    artifact_id: str,
    reconciler: SessionReconciler = Depends(get_session),
) -> Response:
    try:
        filename, content = reconciler.export_artifact(artifact_id)
    except StudioError as e:
        raise HTTPException(status_code=404, detail=e.to_dict()) from e
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@api_router.get("/{artifact_id}/preview", response_class=HTMLResponse)
async def preview_artifact(
    artifact_id: str,
    reconciler: SessionReconciler = Depends(get_session),
) -> HTMLResponse:
    """생성 HTML을 sandbox CSP로 서빙."""
    artifact = _lookup(reconciler, artifact_id)
    return HTMLResponse(
        content=artifact.html,
        headers={
            "Content-Security-Policy": PREVIEW_CSP,
            "X-Content-Type-Options": "nosniff",
        },
    )
