"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from fastapi import FastAPI

from src.app.providers.backend import create_backend
from src.app.providers.memory import MemoryDatabase
from src.app.routes import admin, artifacts, auth, generate, pages
from src.app.services.generation import GenerationService
from src.app.services.session import SessionReconciler, SessionRegistry

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = PROJECT_ROOT / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def resolve_logs_dir(config: dict) -> Path:
    logs_dir = Path(config.get("paths", {}).get("logs_dir", "logs"))
    if not logs_dir.is_absolute():
        logs_dir = PROJECT_ROOT / logs_dir
    return logs_dir


def build_registry(app: FastAPI) -> SessionRegistry:
    """
    세션 팩토리.

    app.state 값은 세션 생성 시점에 읽는다 (테스트에서 provider/logs_dir 교체 가능).
    """

    def factory(session_id: str) -> SessionReconciler:
        config = app.state.config
        return SessionReconciler(
            session_id,
            create_backend(config, app.state.database),
            app.state.generation,
            config,
            logs_dir=app.state.logs_dir,
        )

    return SessionRegistry(factory)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 생성 서비스/세션 레지스트리 초기화
    종료 시: 세션 구독 해제
    """
    # Startup
    config = load_config()
    app.state.config = config
    app.state.logs_dir = resolve_logs_dir(config)
    app.state.database = MemoryDatabase.from_config(config)
    app.state.generation = GenerationService(config, prompts_dir=PROJECT_ROOT / "prompts")
    app.state.sessions = build_registry(app)
    logger.info(
        f"Studio started (backend={config.get('backend', {}).get('provider', 'memory')}, "
        f"model={app.state.generation.model})"
    )

    yield

    # Shutdown
    app.state.sessions.close()


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Ainlo Studio",
    description="Imagem/PDF → aplicação web interativa (HTML único)",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Routes
# =============================================================================

# 페이지 라우트 (HTML)
app.include_router(pages.router, prefix="", tags=["Pages"])

# API 라우트
app.include_router(auth.api_router, prefix="/api/auth", tags=["Auth API"])
app.include_router(generate.api_router, prefix="/api/generate", tags=["Generate API"])
app.include_router(artifacts.api_router, prefix="/api/artifacts", tags=["Artifacts API"])
app.include_router(admin.api_router, prefix="/api/admin", tags=["Admin API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/health")
async def health() -> dict[str, str]:
    """헬스 체크."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
