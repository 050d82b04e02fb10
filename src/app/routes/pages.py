"""
Page Routes: 작업 화면 (HTML).

- GET / → 업로드 폼 + 히스토리 + sandbox iframe 미리보기
"""

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from src.app.routes.deps import open_session, set_session_cookie
from src.domain.constants import PREVIEW_CSP

_templates_dir = Path(__file__).parent.parent / "templates"
jinja_templates = Jinja2Templates(directory=_templates_dir)

# iframe sandbox 속성 = CSP sandbox 지시문의 토큰
IFRAME_SANDBOX = PREVIEW_CSP.removeprefix("sandbox").strip()

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def workspace_page(request: Request) -> HTMLResponse:
    """작업 화면."""
    reconciler, new_session_id = open_session(request)
    await reconciler.restore(replay=False)

    response = jinja_templates.TemplateResponse(
        request,
        "index.html",
        {
            "session": reconciler.snapshot(),
            "artifacts": reconciler.history.items,
            "active": reconciler.history.active,
            "iframe_sandbox": IFRAME_SANDBOX,
        },
    )
    if new_session_id is not None:
        set_session_cookie(response, new_session_id)
    return response
