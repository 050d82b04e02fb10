"""
test_retry.py - 지수 백오프 재시도 테스트
"""

from unittest.mock import AsyncMock, patch

import pytest

from src.app.providers.base import BackendError
from src.utils.retry import is_transient, retry_with_exponential_backoff


class TransientError(Exception):
    pass


class TestRetry:

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        func = AsyncMock(return_value="ok")

        result = await retry_with_exponential_backoff(func, 3, 0.0, 1.0, 2.0, (TransientError,), "a", k=1)

        assert result == "ok"
        func.assert_awaited_once_with("a", k=1)

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[TransientError(), TransientError(), "ok"])

        with patch("src.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_exponential_backoff(
                func, 3, 1.0, 60.0, 2.0, (TransientError,)
            )

        assert result == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_delay_capped(self):
        func = AsyncMock(side_effect=[TransientError()] * 3 + ["ok"])

        with patch("src.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await retry_with_exponential_backoff(func, 3, 4.0, 5.0, 2.0, (TransientError,))

        assert [c.args[0] for c in sleep.await_args_list] == [4.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        func = AsyncMock(side_effect=TransientError("down"))

        with patch("src.utils.retry.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(TransientError):
                await retry_with_exponential_backoff(func, 2, 0.1, 1.0, 2.0, (TransientError,))

        assert func.await_count == 3

    @pytest.mark.asyncio
    async def test_zero_retries_single_attempt(self):
        func = AsyncMock(side_effect=TransientError())

        with pytest.raises(TransientError):
            await retry_with_exponential_backoff(func, 0, 0.0, 0.0, 2.0, (TransientError,))

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_other_exceptions_not_retried(self):
        func = AsyncMock(side_effect=KeyError("x"))

        with pytest.raises(KeyError):
            await retry_with_exponential_backoff(func, 3, 0.0, 0.0, 2.0, (TransientError,))

        assert func.await_count == 1


# =============================================================================
# retry_if (backend 읽기)
# =============================================================================

class TestRetryIf:

    @pytest.mark.asyncio
    async def test_rejected_backend_error_not_retried(self):
        """권한 거절은 재시도해도 같은 결과 → 즉시 raise."""
        func = AsyncMock(side_effect=BackendError("REMOTE_REJECTED", "row level security"))

        with pytest.raises(BackendError):
            await retry_with_exponential_backoff(
                func, 3, 0.0, 0.0, 2.0, (BackendError,), "u1", retry_if=is_transient
            )

        func.assert_awaited_once_with("u1")

    @pytest.mark.asyncio
    async def test_unreachable_backend_error_retried(self):
        func = AsyncMock(
            side_effect=[BackendError("UNREACHABLE", "timeout", unreachable=True), {"id": "u1"}]
        )

        with patch("src.utils.retry.asyncio.sleep", new=AsyncMock()):
            result = await retry_with_exponential_backoff(
                func, 2, 0.1, 1.0, 2.0, (BackendError,), "u1", retry_if=is_transient
            )

        assert result == {"id": "u1"}
        assert func.await_count == 2

    def test_is_transient(self):
        assert is_transient(TransientError()) is True
        assert is_transient(BackendError("X", "y", unreachable=True)) is True
        assert is_transient(BackendError("X", "y")) is False
