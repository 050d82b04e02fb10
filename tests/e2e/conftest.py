"""
E2E 테스트용 FastAPI TestClient 설정.

- lifespan 실행 후 생성 provider만 가짜로 교체 (네트워크 없음)
- run log는 tmp_path로
- TestClient 쿠키 = 브라우저 세션 1개 (cookies.clear()로 새 브라우저)
"""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.app.main import app
from src.app.services.generation import GenerationService


@pytest.fixture
def client(fake_provider, tmp_path: Path) -> Generator[TestClient, None, None]:
    """가짜 provider를 쓰는 TestClient."""
    with TestClient(app) as test_client:
        state = test_client.app.state
        state.generation = GenerationService(state.config, provider=fake_provider)
        state.logs_dir = tmp_path / "logs"
        yield test_client


@pytest.fixture
def signup(client: TestClient) -> Callable[..., dict]:
    """가입 + 로그인 (현재 쿠키 세션)."""

    def _signup(
        email: str = "ana@example.com", password: str = "secret123", name: str = "Ana"
    ) -> dict:
        response = client.post(
            "/api/auth/signup", data={"email": email, "password": password, "name": name}
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _signup


@pytest.fixture
def make_admin(client: TestClient) -> Callable[[str], None]:
    """profile role claim을 admin으로."""

    def _make_admin(account_id: str) -> None:
        client.app.state.database.profiles[account_id]["role"] = "admin"

    return _make_admin
