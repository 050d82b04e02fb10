"""
Entitlement: 세션 단계 분류 + 생성 가능 여부 판정.

규칙:
- 익명/인증 중 → 생성 불가 (요청은 pending으로 보류)
- pro (만료 전) → 무제한
- free 또는 만료된 pro → artifact 수 < 한도
- 만료 판정은 읽는 시점의 now 기준 (캐시된 plan 값을 그대로 믿지 않음)

클라이언트 쪽 만료 계산은 UX용 투영이며 권한 경계가 아니다.
"""

import logging
import math
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from src.domain.constants import FREE_PLAN_ARTIFACT_LIMIT, PRO_GRANT_DAYS
from src.domain.schemas import Account, Plan, UsageSummary

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    """세션 단계."""
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED_FREE = "authenticated_free"
    AUTHENTICATED_PRO = "authenticated_pro"
    # 읽는 순간에만 관측되고 곧바로 free로 접힘
    AUTHENTICATED_PRO_EXPIRED = "authenticated_pro_expired"

    @property
    def is_authenticated(self) -> bool:
        return self not in (SessionPhase.ANONYMOUS, SessionPhase.AUTHENTICATING)


def classify_plan(account: Account, now: datetime) -> SessionPhase:
    """계정 플랜 → 원시 단계 (만료된 pro 포함)."""
    if account.plan == Plan.PRO:
        if account.is_pro_expired(now):
            return SessionPhase.AUTHENTICATED_PRO_EXPIRED
        return SessionPhase.AUTHENTICATED_PRO
    return SessionPhase.AUTHENTICATED_FREE


def resolve_phase(
    account: Account | None,
    now: datetime,
    authenticating: bool = False,
) -> SessionPhase:
    """
    현재 세션 단계.

    만료된 pro는 free로 접는다 (원격 plan 값은 건드리지 않음).
    """
    if authenticating:
        return SessionPhase.AUTHENTICATING
    if account is None:
        return SessionPhase.ANONYMOUS

    phase = classify_plan(account, now)
    if phase == SessionPhase.AUTHENTICATED_PRO_EXPIRED:
        logger.info(
            f"Pro plan expired for account {account.id} "
            f"(expired at {account.pro_expires_at}); gating as free"
        )
        return SessionPhase.AUTHENTICATED_FREE
    return phase


def can_generate(
    phase: SessionPhase,
    artifact_count: int,
    limit: int = FREE_PLAN_ARTIFACT_LIMIT,
) -> bool:
    """생성 가능 여부."""
    if not phase.is_authenticated:
        return False
    if phase == SessionPhase.AUTHENTICATED_PRO:
        return True
    return artifact_count < limit


def days_remaining(expires_at: datetime | None, now: datetime) -> int | None:
    """pro 남은 일수 (올림). 만료일 없으면 None."""
    if expires_at is None:
        return None
    seconds = (expires_at - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def summarize_usage(
    account: Account,
    artifact_count: int,
    now: datetime,
    limit: int = FREE_PLAN_ARTIFACT_LIMIT,
) -> UsageSummary:
    """대시보드용 사용량 요약."""
    plan = account.effective_plan(now)
    if plan == Plan.PRO:
        return UsageSummary(
            plan=plan,
            used=artifact_count,
            limit=None,
            pro_expires_at=account.pro_expires_at,
            days_remaining=days_remaining(account.pro_expires_at, now),
        )
    return UsageSummary(plan=plan, used=artifact_count, limit=limit)


def pro_grant_fields(now: datetime, days: int = PRO_GRANT_DAYS) -> dict[str, Any]:
    """pro 부여 시 profile 변경값."""
    return {
        "plan": Plan.PRO.value,
        "pro_expires_at": (now + timedelta(days=days)).isoformat(),
    }


def pro_revoke_fields() -> dict[str, Any]:
    """pro 회수 시 profile 변경값 (만료일 제거)."""
    return {"plan": Plan.FREE.value, "pro_expires_at": None}
