"""
Pytest fixtures for the studio tests.

구성:
- 설정 (default.yaml)
- 가짜 생성 provider (네트워크 없음)
- in-memory 백엔드 (세션 간 공유 DB)
- 고정 시계
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest
import yaml

from src.app.providers.base import (
    GenerationProvider,
    GenerationProviderError,
    GenerationResult,
    compute_hash,
)
from src.app.providers.memory import MemoryBackend, MemoryDatabase
from src.app.services.generation import GenerationService
from src.app.services.session import SessionReconciler

SAMPLE_HTML = (
    "<!DOCTYPE html><html><head><title>App</title></head>"
    "<body><button>Clique</button></body></html>"
)

# 1x1 PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c63f8ffff3f0005fe02fe0dbb6d6a0000000049454e44ae426082"
)


# =============================================================================
# Path / Config Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def config() -> dict:
    """테스트용 설정 (재시도 없음)."""
    return {
        "ai": {"gemini": {"model": "gemini-test", "fallback": "gemini-test-lite"}},
        "backend": {"provider": "memory"},
        "plans": {"free_artifact_limit": 3, "pro_grant_days": 30},
        "upload": {"max_size_mb": 1},
        "reconcile": {"read_retries": 0, "retry_delay": 0},
    }


# =============================================================================
# Clock
# =============================================================================

class FixedClock:
    """수동으로 전진시키는 시계."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        from datetime import timedelta
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 6, 1, 12, 0, tzinfo=UTC))


# =============================================================================
# Fake Generation Provider
# =============================================================================

class FakeGenerationProvider(GenerationProvider):
    """
    네트워크 없는 생성 provider.

    - text: 반환할 원문
    - error: 설정하면 generate()가 raise
    - gate: 설정하면 gate.set()까지 대기 (동시성 테스트)
    """

    def __init__(self, text: str = SAMPLE_HTML, model: str = "gemini-test"):
        self.text = text
        self.model = model
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[dict] = []

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        file_bytes: bytes | None = None,
        mime_type: str | None = None,
    ) -> GenerationResult:
        self.calls.append({
            "prompt": prompt,
            "system_instruction": system_instruction,
            "file_bytes": file_bytes,
            "mime_type": mime_type,
        })
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return GenerationResult(
            success=True,
            text=self.text,
            model_requested=self.model,
            model_used=self.model,
            prompt_hash=compute_hash(prompt),
            raw_output_hash=compute_hash(self.text) if self.text else None,
        )


@pytest.fixture
def fake_provider() -> FakeGenerationProvider:
    return FakeGenerationProvider()


@pytest.fixture
def failing_provider() -> FakeGenerationProvider:
    provider = FakeGenerationProvider()
    provider.error = GenerationProviderError("GENERATION_FAILED", "Falha simulada")
    return provider


@pytest.fixture
def generation_service(config: dict, fake_provider: FakeGenerationProvider) -> GenerationService:
    return GenerationService(config, provider=fake_provider)


# =============================================================================
# Backend / Reconciler
# =============================================================================

@pytest.fixture
def database() -> MemoryDatabase:
    return MemoryDatabase()


@pytest.fixture
def backend(database: MemoryDatabase) -> MemoryBackend:
    return MemoryBackend(database)


@pytest.fixture
def make_reconciler(
    config: dict,
    database: MemoryDatabase,
    generation_service: GenerationService,
    clock: FixedClock,
    tmp_path: Path,
) -> Callable[..., SessionReconciler]:
    """세션 reconciler 팩토리 (같은 DB 공유)."""

    def factory(session_id: str = "SES-test", backend: MemoryBackend | None = None) -> SessionReconciler:
        return SessionReconciler(
            session_id,
            backend or MemoryBackend(database),
            generation_service,
            config,
            clock=clock,
            logs_dir=tmp_path / "logs",
        )

    return factory


@pytest.fixture
def reconciler(make_reconciler: Callable[..., SessionReconciler]) -> SessionReconciler:
    return make_reconciler()


async def _register(
    reconciler: SessionReconciler,
    email: str = "ana@example.com",
    password: str = "secret123",
    name: str = "Ana",
) -> None:
    result = await reconciler.sign_up(email, password, name)
    assert not result.confirmation_required


@pytest.fixture
def register() -> Callable[..., object]:
    """가입 + 로그인 상태로 만드는 코루틴 함수."""
    return _register


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
