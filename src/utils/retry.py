"""
재시도 로직 유틸리티.

원격 읽기(profile, artifact 목록) 실패 시 자동 재시도를 지원합니다.
쓰기(insert)는 중복 생성 위험이 있으므로 재시도하지 않습니다.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(error: Exception) -> bool:
    """
    재시도할 만한 실패인지.

    `unreachable` 속성이 있는 에러(BackendError)는 연결 불가일 때만 재시도.
    provider 거절(권한, RLS 등)은 다시 보내도 같은 결과.
    """
    return bool(getattr(error, "unreachable", True))


async def retry_with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    *args: Any,
    retry_if: Callable[[Exception], bool] | None = None,
    **kwargs: Any,
) -> T:
    """
    지수 백오프를 사용한 재시도.

    SessionReconciler.refresh()가 backend 읽기에 사용:
        await retry_with_exponential_backoff(
            backend.get_profile, 2, 0.5, 60.0, 2.0, (BackendError,), account_id,
            retry_if=is_transient,
        )

    Args:
        func: 재시도할 비동기 함수
        max_retries: 최대 재시도 횟수 (0이면 1회만 시도)
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들
        *args: func에 전달할 위치 인자
        retry_if: 잡은 예외를 재시도할지 판정 (False면 즉시 raise)
        **kwargs: func에 전달할 키워드 인자

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외 (또는 retry_if가 거절한 예외)
    """
    delay = initial_delay
    name = getattr(func, "__name__", "call")

    for attempt in range(max_retries + 1):
        try:
            result = await func(*args, **kwargs)
            if attempt > 0:
                logger.info(
                    f"{name}: retry succeeded on attempt {attempt + 1}/{max_retries + 1}"
                )
            return result

        except exceptions as e:
            if retry_if is not None and not retry_if(e):
                logger.warning(f"{name}: not retrying: {e}")
                raise

            if attempt == max_retries:
                logger.error(
                    f"{name}: all {max_retries + 1} attempts failed. Last error: {e}"
                )
                raise

            logger.warning(
                f"{name}: attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )

            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)

    # Should never reach here
    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)
