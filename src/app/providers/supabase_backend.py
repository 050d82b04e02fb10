"""
Supabase 백엔드 (identity + record store).

- 브라우저 세션마다 클라이언트 1개 (로그인 세션을 클라이언트가 보유)
- supabase-py 동기 클라이언트 → asyncio.to_thread로 이벤트 루프 밖에서 호출
- 테이블: profiles (계정/플랜/role), creations (artifact)

에러 정책:
- 네트워크 장애(httpx) → BackendError(unreachable=True)
- 그 외 provider 거절 → BackendError (message는 provider 원문)
"""

import asyncio
import logging
import os
from collections.abc import Callable
from typing import Any

import httpx

from src.domain.constants import ARTIFACTS_TABLE, PROFILES_TABLE

from .backend import AuthSession, IdentityCallback, StudioBackend
from .base import BackendError

logger = logging.getLogger(__name__)


class SupabaseBackend(StudioBackend):
    """
    Supabase 백엔드.

    Usage:
        backend = SupabaseBackend(url, key)
        session = await backend.sign_in("a@b.com", "secret")
        rows = await backend.list_artifacts(session.account_id)
    """

    name = "supabase"

    def __init__(
        self,
        url: str | None = None,
        key: str | None = None,
        profiles_table: str = PROFILES_TABLE,
        artifacts_table: str = ARTIFACTS_TABLE,
        client: Any = None,
    ):
        self.url = url or os.environ.get("SUPABASE_URL", "")
        self.key = key or os.environ.get("SUPABASE_KEY", "")
        self.profiles_table = profiles_table
        self.artifacts_table = artifacts_table
        self._client = client

    @classmethod
    def from_config(cls, config: dict) -> "SupabaseBackend":
        tables = config.get("backend", {}).get("tables", {})
        return cls(
            profiles_table=tables.get("profiles", PROFILES_TABLE),
            artifacts_table=tables.get("artifacts", ARTIFACTS_TABLE),
        )

    def _get_client(self) -> Any:
        """Supabase 클라이언트 (lazy init)."""
        if self._client is None:
            if not self.url or not self.key:
                raise BackendError(
                    "SUPABASE_NOT_CONFIGURED",
                    "SUPABASE_URL / SUPABASE_KEY not set",
                    unreachable=True,
                )
            from supabase import create_client
            self._client = create_client(self.url, self.key)
        return self._client

    async def _run(self, operation: str, func: Callable[[], Any]) -> Any:
        """동기 호출을 스레드에서 실행하고 에러를 BackendError로 변환."""
        try:
            return await asyncio.to_thread(func)
        except BackendError:
            raise
        except httpx.HTTPError as e:
            logger.warning(f"Supabase {operation} unreachable: {e}")
            raise BackendError(
                "REMOTE_UNREACHABLE", str(e), unreachable=True, operation=operation
            ) from e
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.warning(f"Supabase {operation} rejected: {message}")
            raise BackendError("REMOTE_REJECTED", message, operation=operation) from e

    @staticmethod
    def _to_session(session: Any) -> AuthSession | None:
        if session is None or getattr(session, "user", None) is None:
            return None
        user = session.user
        email = user.email or ""
        metadata = getattr(user, "user_metadata", None) or {}
        return AuthSession(
            account_id=str(user.id),
            email=email,
            name=metadata.get("full_name") or metadata.get("name") or email.split("@")[0],
            access_token=getattr(session, "access_token", None),
        )

    # =========================================================================
    # Identity
    # =========================================================================

    async def sign_up(self, email: str, password: str, name: str) -> AuthSession | None:
        client = self._get_client()
        response = await self._run(
            "sign_up",
            lambda: client.auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"full_name": name, "name": name}},
            }),
        )
        # 이메일 확인이 켜져 있으면 user만 있고 session은 없음
        return self._to_session(getattr(response, "session", None))

    async def sign_in(self, email: str, password: str) -> AuthSession:
        client = self._get_client()
        response = await self._run(
            "sign_in",
            lambda: client.auth.sign_in_with_password(
                {"email": email, "password": password}
            ),
        )
        session = self._to_session(getattr(response, "session", None))
        if session is None:
            raise BackendError("REMOTE_REJECTED", "Invalid login credentials")
        return session

    async def sign_out(self) -> None:
        client = self._get_client()
        await self._run("sign_out", client.auth.sign_out)

    async def get_session(self) -> AuthSession | None:
        client = self._get_client()
        session = await self._run("get_session", client.auth.get_session)
        return self._to_session(session)

    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        """
        auth 상태 변경 구독.

        supabase-py는 sign_in/sign_out 도중 리스너를 동기 호출하고,
        그 호출은 _run()의 worker 스레드에서 일어난다.
        구독 시점의 이벤트 루프가 있으면 콜백을 그 루프로 넘긴다.
        """
        client = self._get_client()
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        def on_change(event: Any, session: Any) -> None:
            event_name = str(getattr(event, "value", event))
            auth_session = self._to_session(session)
            if loop is None or loop.is_closed():
                callback(event_name, auth_session)
                return
            loop.call_soon_threadsafe(callback, event_name, auth_session)

        subscription = client.auth.on_auth_state_change(on_change)

        def unsubscribe() -> None:
            subscription.unsubscribe()

        return unsubscribe

    async def get_profile(self, account_id: str) -> dict[str, Any] | None:
        client = self._get_client()
        response = await self._run(
            "get_profile",
            lambda: client.table(self.profiles_table)
            .select("*")
            .eq("id", account_id)
            .limit(1)
            .execute(),
        )
        rows = response.data or []
        return rows[0] if rows else None

    async def update_profile(
        self, account_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        client = self._get_client()
        response = await self._run(
            "update_profile",
            lambda: client.table(self.profiles_table)
            .update(fields)
            .eq("id", account_id)
            .execute(),
        )
        rows = response.data or []
        if not rows:
            raise BackendError("NOT_FOUND", f"Profile not found: {account_id}")
        return rows[0]

    async def list_profiles(self) -> list[dict[str, Any]]:
        client = self._get_client()
        response = await self._run(
            "list_profiles",
            lambda: client.table(self.profiles_table)
            .select("*")
            .order("created_at", desc=True)
            .execute(),
        )
        return response.data or []

    async def delete_profile(self, account_id: str) -> None:
        client = self._get_client()
        await self._run(
            "delete_profile",
            lambda: client.table(self.profiles_table)
            .delete()
            .eq("id", account_id)
            .execute(),
        )

    # =========================================================================
    # Records
    # =========================================================================

    async def insert_artifact(self, record: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        response = await self._run(
            "insert_artifact",
            lambda: client.table(self.artifacts_table).insert(record).execute(),
        )
        rows = response.data or []
        if not rows:
            raise BackendError("REMOTE_REJECTED", "Insert returned no rows")
        return rows[0]

    async def list_artifacts(self, owner_id: str) -> list[dict[str, Any]]:
        client = self._get_client()
        response = await self._run(
            "list_artifacts",
            lambda: client.table(self.artifacts_table)
            .select("*")
            .eq("user_id", owner_id)
            .order("created_at", desc=True)
            .execute(),
        )
        return response.data or []

    async def delete_artifact(self, owner_id: str, artifact_id: str) -> None:
        client = self._get_client()
        await self._run(
            "delete_artifact",
            lambda: client.table(self.artifacts_table)
            .delete()
            .eq("id", artifact_id)
            .eq("user_id", owner_id)
            .execute(),
        )

    async def count_artifacts(self, owner_id: str) -> int:
        client = self._get_client()
        response = await self._run(
            "count_artifacts",
            lambda: client.table(self.artifacts_table)
            .select("id", count="exact")
            .eq("user_id", owner_id)
            .execute(),
        )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])
