"""
In-memory 백엔드 (개발/테스트용).

- MemoryDatabase: 프로세스 전체가 공유하는 계정/profile/artifact 테이블
- MemoryBackend: 브라우저 세션 1개의 로그인 상태 + 구독자

에러 메시지는 실제 identity provider(Supabase)와 같은 원문을 사용한다.
"""

import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from src.core.ids import generate_artifact_id

from .backend import (
    EVENT_SIGNED_IN,
    EVENT_SIGNED_OUT,
    EVENT_USER_UPDATED,
    AuthSession,
    IdentityCallback,
    StudioBackend,
)
from .base import BackendError

logger = logging.getLogger(__name__)

DEFAULT_MIN_PASSWORD_LENGTH = 6


def _hash_password(password: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{password}".encode()).hexdigest()


@dataclass
class _UserRecord:
    id: str
    email: str
    salt: str
    password_hash: str
    confirmed: bool = True


@dataclass
class MemoryDatabase:
    """
    공유 저장소.

    require_confirmation=True면 가입 직후 세션이 발급되지 않음
    (confirm_email() 호출 후 로그인 가능).
    """
    require_confirmation: bool = False
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH
    users: dict[str, _UserRecord] = field(default_factory=dict)  # email → user
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)
    creations: dict[str, dict[str, Any]] = field(default_factory=dict)
    _seq: int = 0

    @classmethod
    def from_config(cls, config: dict) -> "MemoryDatabase":
        memory_config = config.get("backend", {}).get("memory", {})
        return cls(
            require_confirmation=memory_config.get("require_confirmation", False),
            min_password_length=memory_config.get(
                "min_password_length", DEFAULT_MIN_PASSWORD_LENGTH
            ),
        )

    def next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def confirm_email(self, email: str) -> None:
        """이메일 확인 링크 클릭에 해당."""
        user = self.users.get(email.strip().lower())
        if user is None:
            raise KeyError(email)
        user.confirmed = True


class MemoryBackend(StudioBackend):
    """세션 전용 in-memory 백엔드."""

    name = "memory"

    def __init__(self, database: MemoryDatabase):
        self.db = database
        self._session: AuthSession | None = None
        self._listeners: list[IdentityCallback] = []

    # =========================================================================
    # Identity
    # =========================================================================

    async def sign_up(self, email: str, password: str, name: str) -> AuthSession | None:
        key = email.strip().lower()
        if key in self.db.users:
            raise BackendError("AUTH_REJECTED", "User already registered")
        if len(password) < self.db.min_password_length:
            raise BackendError(
                "AUTH_REJECTED",
                f"Password should be at least {self.db.min_password_length} characters.",
            )

        salt = secrets.token_hex(8)
        user = _UserRecord(
            id=generate_artifact_id(),
            email=key,
            salt=salt,
            password_hash=_hash_password(password, salt),
            confirmed=not self.db.require_confirmation,
        )
        self.db.users[key] = user
        self.db.profiles[user.id] = {
            "id": user.id,
            "email": key,
            "name": name or key.split("@")[0],
            "plan": "free",
            "pro_expires_at": None,
            "role": "user",
            "created_at": datetime.now(UTC).isoformat(),
            "_seq": self.db.next_seq(),
        }
        logger.info(f"Memory backend: registered {key}")

        if not user.confirmed:
            return None
        return self._open_session(user)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        user = self.db.users.get(email.strip().lower())
        if user is None or user.password_hash != _hash_password(password, user.salt):
            raise BackendError("AUTH_REJECTED", "Invalid login credentials")
        if not user.confirmed:
            raise BackendError("AUTH_REJECTED", "Email not confirmed")
        if user.id not in self.db.profiles:
            # 관리자가 profile을 삭제한 계정
            raise BackendError("AUTH_REJECTED", "Invalid login credentials")
        return self._open_session(user)

    async def sign_out(self) -> None:
        self._session = None
        self._notify(EVENT_SIGNED_OUT, None)

    async def get_session(self) -> AuthSession | None:
        if self._session and self._session.account_id not in self.db.profiles:
            self._session = None
        return self._session

    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def get_profile(self, account_id: str) -> dict[str, Any] | None:
        row = self.db.profiles.get(account_id)
        return self._public(row) if row else None

    async def update_profile(
        self, account_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        row = self.db.profiles.get(account_id)
        if row is None:
            raise BackendError("NOT_FOUND", f"Profile not found: {account_id}")
        row.update(fields)
        if self._session and self._session.account_id == account_id:
            self._notify(EVENT_USER_UPDATED, self._session)
        return self._public(row)

    async def list_profiles(self) -> list[dict[str, Any]]:
        rows = sorted(
            self.db.profiles.values(),
            key=lambda r: (r.get("created_at") or "", r.get("_seq", 0)),
            reverse=True,
        )
        return [self._public(r) for r in rows]

    async def delete_profile(self, account_id: str) -> None:
        row = self.db.profiles.pop(account_id, None)
        if row is None:
            return
        for artifact_id in [
            k for k, v in self.db.creations.items() if v.get("user_id") == account_id
        ]:
            del self.db.creations[artifact_id]

    # =========================================================================
    # Records
    # =========================================================================

    async def insert_artifact(self, record: dict[str, Any]) -> dict[str, Any]:
        row = dict(record)
        row["id"] = row.get("id") or generate_artifact_id()
        row["created_at"] = row.get("created_at") or datetime.now(UTC).isoformat()
        row["_seq"] = self.db.next_seq()
        self.db.creations[row["id"]] = row
        return self._public(row)

    async def list_artifacts(self, owner_id: str) -> list[dict[str, Any]]:
        rows = [r for r in self.db.creations.values() if r.get("user_id") == owner_id]
        rows.sort(key=lambda r: (r.get("created_at") or "", r["_seq"]), reverse=True)
        return [self._public(r) for r in rows]

    async def delete_artifact(self, owner_id: str, artifact_id: str) -> None:
        row = self.db.creations.get(artifact_id)
        if row is not None and row.get("user_id") == owner_id:
            del self.db.creations[artifact_id]

    async def count_artifacts(self, owner_id: str) -> int:
        return sum(1 for r in self.db.creations.values() if r.get("user_id") == owner_id)

    # =========================================================================
    # Internal
    # =========================================================================

    def _open_session(self, user: _UserRecord) -> AuthSession:
        profile = self.db.profiles.get(user.id, {})
        self._session = AuthSession(
            account_id=user.id,
            email=user.email,
            name=profile.get("name") or user.email.split("@")[0],
            access_token=secrets.token_urlsafe(24),
        )
        self._notify(EVENT_SIGNED_IN, self._session)
        return self._session

    def _notify(self, event: str, session: AuthSession | None) -> None:
        for callback in list(self._listeners):
            callback(event, session)

    @staticmethod
    def _public(row: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in row.items() if not k.startswith("_")}
