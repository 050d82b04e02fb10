"""
인증/저장소 백엔드 추상 인터페이스.

- IdentityProvider: 가입/로그인/로그아웃, 세션 조회, 변경 구독, profile 조회/수정
- RecordStore: artifact insert/list/delete/count (owner 단위)

브라우저 세션 1개 = 백엔드 인스턴스 1개 (로그인 세션 상태를 인스턴스가 보유).
에러는 BackendError로 통일하고, provider 메시지는 그대로 전달한다
(사용자 메시지 매핑은 services/auth.py).
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# identity 변경 이벤트
EVENT_SIGNED_IN = "SIGNED_IN"
EVENT_SIGNED_OUT = "SIGNED_OUT"
EVENT_TOKEN_REFRESHED = "TOKEN_REFRESHED"
EVENT_USER_UPDATED = "USER_UPDATED"


@dataclass
class AuthSession:
    """identity provider가 발급한 로그인 세션."""
    account_id: str
    email: str
    name: str = ""
    access_token: str | None = None


IdentityCallback = Callable[[str, AuthSession | None], None]


class IdentityProvider(ABC):
    """계정/세션 소유자."""

    @abstractmethod
    async def sign_up(self, email: str, password: str, name: str) -> AuthSession | None:
        """
        가입.

        Returns:
            AuthSession (즉시 로그인) 또는 None (이메일 확인 필요)

        Raises:
            BackendError: 중복 가입, 약한 비밀번호 등 (message는 provider 원문)
        """
        ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """로그인. 실패 시 BackendError."""
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    @abstractmethod
    async def get_session(self) -> AuthSession | None:
        """현재 로그인 세션 (없으면 None)."""
        ...

    @abstractmethod
    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        """
        identity 변경 구독.

        콜백은 이벤트 루프 스레드에서 호출된다.

        Returns:
            구독 해제 함수

        Raises:
            BackendError: 백엔드 미설정 또는 연결 불가
        """
        ...

    @abstractmethod
    async def get_profile(self, account_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def update_profile(
        self, account_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        ...

    @abstractmethod
    async def list_profiles(self) -> list[dict[str, Any]]:
        """전체 profile (최신 가입순). 관리자 전용."""
        ...

    @abstractmethod
    async def delete_profile(self, account_id: str) -> None:
        ...


class RecordStore(ABC):
    """artifact 저장소 (owner_id 단위로 격리)."""

    @abstractmethod
    async def insert_artifact(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        artifact row 저장.

        Returns:
            저장된 row (저장소가 id/created_at을 확정할 수 있음)
        """
        ...

    @abstractmethod
    async def list_artifacts(self, owner_id: str) -> list[dict[str, Any]]:
        """owner의 artifact 목록 (created_at 최신순)."""
        ...

    @abstractmethod
    async def delete_artifact(self, owner_id: str, artifact_id: str) -> None:
        ...

    @abstractmethod
    async def count_artifacts(self, owner_id: str) -> int:
        ...


class StudioBackend(IdentityProvider, RecordStore):
    """identity + record store를 함께 제공하는 백엔드."""

    name: str = "backend"


def create_backend(config: dict, database: Any = None) -> StudioBackend:
    """
    config의 backend.provider로 백엔드 생성.

    Args:
        config: 전체 config dict
        database: memory 백엔드가 공유할 MemoryDatabase (세션 간 공유)

    Returns:
        세션 전용 StudioBackend 인스턴스
    """
    backend_config = config.get("backend", {})
    provider = backend_config.get("provider", "memory")

    if provider == "supabase":
        from .supabase_backend import SupabaseBackend
        return SupabaseBackend.from_config(config)

    if provider == "memory":
        from .memory import MemoryBackend, MemoryDatabase
        if database is None:
            database = MemoryDatabase.from_config(config)
        return MemoryBackend(database)

    raise ValueError(f"Unknown backend provider: {provider}")
