"""
test_entitlement.py - 세션 단계/생성 가능 여부 테스트

규칙:
- free: artifact 0,1,2개 → 가능, 3개 → 불가
- pro (만료 전) → 무제한
- pro (만료 후) → free와 같은 게이팅
"""

from datetime import UTC, datetime, timedelta

import pytest

from src.app.services.entitlement import (
    SessionPhase,
    can_generate,
    classify_plan,
    days_remaining,
    pro_grant_fields,
    pro_revoke_fields,
    resolve_phase,
    summarize_usage,
)
from src.domain.schemas import Account, Plan

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def make_account(plan: Plan = Plan.FREE, expires_in: timedelta | None = None) -> Account:
    return Account(
        id="acc-1",
        email="ana@example.com",
        name="Ana",
        plan=plan,
        pro_expires_at=NOW + expires_in if expires_in is not None else None,
    )


# =============================================================================
# 단계 분류
# =============================================================================

class TestResolvePhase:

    def test_anonymous(self):
        assert resolve_phase(None, NOW) == SessionPhase.ANONYMOUS

    def test_authenticating_wins(self):
        assert resolve_phase(make_account(), NOW, authenticating=True) == (
            SessionPhase.AUTHENTICATING
        )

    def test_free(self):
        assert resolve_phase(make_account(), NOW) == SessionPhase.AUTHENTICATED_FREE

    def test_pro_active(self):
        account = make_account(Plan.PRO, timedelta(days=1))

        assert resolve_phase(account, NOW) == SessionPhase.AUTHENTICATED_PRO

    def test_pro_without_expiry_is_pro(self):
        account = make_account(Plan.PRO)

        assert resolve_phase(account, NOW) == SessionPhase.AUTHENTICATED_PRO

    def test_expired_pro_collapses_to_free(self):
        account = make_account(Plan.PRO, timedelta(days=-1))

        assert classify_plan(account, NOW) == SessionPhase.AUTHENTICATED_PRO_EXPIRED
        assert resolve_phase(account, NOW) == SessionPhase.AUTHENTICATED_FREE
        # 원격 plan 값은 그대로
        assert account.plan == Plan.PRO

    def test_expiry_boundary_is_expired(self):
        account = make_account(Plan.PRO, timedelta(0))

        assert resolve_phase(account, NOW) == SessionPhase.AUTHENTICATED_FREE


# =============================================================================
# 생성 가능 여부
# =============================================================================

class TestCanGenerate:

    @pytest.mark.parametrize("count,expected", [(0, True), (1, True), (2, True), (3, False), (7, False)])
    def test_free_limit(self, count, expected):
        assert can_generate(SessionPhase.AUTHENTICATED_FREE, count) is expected

    def test_pro_unlimited(self):
        assert can_generate(SessionPhase.AUTHENTICATED_PRO, 500)

    def test_expired_pro_uses_free_gate(self):
        account = make_account(Plan.PRO, timedelta(days=-1))
        phase = resolve_phase(account, NOW)

        assert can_generate(phase, 3) is False
        assert can_generate(phase, 2) is True

    @pytest.mark.parametrize("phase", [SessionPhase.ANONYMOUS, SessionPhase.AUTHENTICATING])
    def test_unauthenticated_never(self, phase):
        assert can_generate(phase, 0) is False

    def test_custom_limit(self):
        assert can_generate(SessionPhase.AUTHENTICATED_FREE, 4, limit=5)


# =============================================================================
# 사용량 요약
# =============================================================================

class TestUsageSummary:

    def test_free_summary(self):
        summary = summarize_usage(make_account(), 3, NOW)

        assert summary.plan == Plan.FREE
        assert summary.limit == 3
        assert summary.limit_reached
        assert summary.percentage == 100.0

    def test_pro_summary_unlimited_with_days(self):
        account = make_account(Plan.PRO, timedelta(days=29, hours=1))

        summary = summarize_usage(account, 10, NOW)

        assert summary.plan == Plan.PRO
        assert summary.limit is None
        assert not summary.limit_reached
        assert summary.days_remaining == 30
        assert summary.percentage == 10.0

    def test_expired_pro_summary_is_free(self):
        account = make_account(Plan.PRO, timedelta(days=-2))

        summary = summarize_usage(account, 1, NOW)

        assert summary.plan == Plan.FREE
        assert summary.days_remaining is None

    def test_days_remaining_rounds_up(self):
        assert days_remaining(NOW + timedelta(hours=1), NOW) == 1
        assert days_remaining(NOW - timedelta(days=3), NOW) == 0
        assert days_remaining(None, NOW) is None


# =============================================================================
# 플랜 변경값
# =============================================================================

class TestPlanFields:

    def test_grant_sets_expiry(self):
        fields = pro_grant_fields(NOW)

        assert fields["plan"] == "pro"
        assert datetime.fromisoformat(fields["pro_expires_at"]) == NOW + timedelta(days=30)

    def test_revoke_clears_expiry(self):
        assert pro_revoke_fields() == {"plan": "free", "pro_expires_at": None}
