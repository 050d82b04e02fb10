"""
Admin Service: 사용자 목록, 플랜 토글, 사용자 삭제.

관리자 판정은 profile의 role claim으로만 한다 (이메일 비교 금지).
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from src.app.providers.backend import StudioBackend
from src.app.providers.base import BackendError
from src.app.services.entitlement import pro_grant_fields, pro_revoke_fields
from src.domain.constants import PRO_GRANT_DAYS
from src.domain.errors import (
    ErrorCodes,
    InputValidationError,
    PermissionDeniedError,
    PersistenceError,
    RemoteUnavailableError,
    StudioError,
)
from src.domain.schemas import Account, Plan

logger = logging.getLogger(__name__)


class AdminService:
    """관리자 작업."""

    def __init__(
        self,
        backend: StudioBackend,
        config: dict | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.backend = backend
        self.clock = clock or (lambda: datetime.now(UTC))
        plans = (config or {}).get("plans", {})
        self.grant_days = int(plans.get("pro_grant_days", PRO_GRANT_DAYS))

    @staticmethod
    def require_admin(actor: Account | None) -> Account:
        if actor is None or not actor.is_admin:
            raise PermissionDeniedError(
                ErrorCodes.NOT_ADMIN,
                "Acesso restrito a administradores.",
                account_id=actor.id if actor else None,
            )
        return actor

    async def list_users(self, actor: Account | None) -> list[Account]:
        """전체 사용자 (최신 가입순)."""
        self.require_admin(actor)
        try:
            rows = await self.backend.list_profiles()
        except BackendError as e:
            raise _to_studio_error(e, "list_profiles") from e
        return [Account.from_dict(row) for row in rows]

    async def toggle_plan(self, actor: Account | None, account_id: str) -> Account:
        """
        free → pro (now + 30일), pro → free (만료일 제거).

        Returns:
            변경된 계정
        """
        admin = self.require_admin(actor)
        try:
            row = await self.backend.get_profile(account_id)
            if row is None:
                raise InputValidationError(
                    ErrorCodes.ACCOUNT_NOT_FOUND,
                    "Usuário não encontrado.",
                    account_id=account_id,
                )
            current = Account.from_dict(row)
            if current.plan == Plan.PRO:
                fields = pro_revoke_fields()
            else:
                fields = pro_grant_fields(self.clock(), self.grant_days)
            updated = await self.backend.update_profile(account_id, fields)
        except BackendError as e:
            raise _to_studio_error(e, "update_profile") from e

        account = Account.from_dict(updated)
        logger.info(
            f"Admin {admin.id} set plan of {account_id} to {account.plan.value} "
            f"(expires {account.pro_expires_at})"
        )
        return account

    async def delete_user(self, actor: Account | None, account_id: str) -> None:
        admin = self.require_admin(actor)
        try:
            await self.backend.delete_profile(account_id)
        except BackendError as e:
            raise _to_studio_error(e, "delete_profile") from e
        logger.info(f"Admin {admin.id} deleted profile {account_id}")


def _to_studio_error(error: BackendError, operation: str) -> StudioError:
    if error.unreachable:
        return RemoteUnavailableError(
            ErrorCodes.REMOTE_UNAVAILABLE,
            "Servidor indisponível. Tente novamente.",
            operation=operation,
        )
    return PersistenceError(
        ErrorCodes.PERSIST_FAILED,
        f"Erro ao atualizar: {error.message}",
        operation=operation,
    )
