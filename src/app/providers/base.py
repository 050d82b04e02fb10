"""
AI Provider 추상 인터페이스.

- Provider 추상화로 모델 교체 가능
- model_requested + model_used 필수 기록
- 원문 응답은 extractor만 해석 (provider는 텍스트 그대로 반환)
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


def compute_hash(content: str | bytes) -> str:
    """SHA-256 해시 계산."""
    if isinstance(content, str):
        content = content.encode()
    return f"sha256:{hashlib.sha256(content).hexdigest()[:16]}"


# =============================================================================
# Result Data Classes
# =============================================================================

@dataclass
class GenerationResult:
    """
    생성 결과 (모델 원문).

    필수 키:
    - model_requested: config에 설정된 모델
    - model_used: 실제 호출된 모델 (fallback 시 다를 수 있음)
    - fallback_triggered: fallback 발생 여부
    """
    success: bool
    text: str | None = None

    model_requested: str | None = None
    model_used: str | None = None
    fallback_triggered: bool = False

    generated_at: str | None = None
    prompt_hash: str | None = None
    raw_output_hash: str | None = None

    error_message: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "success": self.success,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "fallback_triggered": self.fallback_triggered,
            "generated_at": self.generated_at,
            "prompt_hash": self.prompt_hash,
            "raw_output_hash": self.raw_output_hash,
            "error_message": self.error_message,
            "error_code": self.error_code,
        }
        # None 값 제거 (원문 text는 로그에 남기지 않음)
        return {k: v for k, v in result.items() if v is not None}


# =============================================================================
# Provider Exceptions
# =============================================================================

class ProviderError(Exception):
    """Provider 관련 에러."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")


class GenerationProviderError(ProviderError):
    """생성 모델 호출 에러."""
    pass


class BackendError(ProviderError):
    """
    인증/저장소 백엔드 에러.

    unreachable=True: 네트워크/서버 장애 (재시도 가능)
    unreachable=False: 요청 자체가 거절됨 (자격 증명 오류 등)
    """

    def __init__(
        self, code: str, message: str, unreachable: bool = False, **context: Any
    ) -> None:
        self.unreachable = unreachable
        super().__init__(code, message, **context)


# =============================================================================
# Abstract Provider
# =============================================================================

class GenerationProvider(ABC):
    """
    생성 모델 Provider 추상 인터페이스.

    역할: 시스템 지시문 + 사용자 프롬프트 (+ 첨부 파일) → 텍스트 1건
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        file_bytes: bytes | None = None,
        mime_type: str | None = None,
    ) -> GenerationResult:
        """
        HTML 생성 요청.

        Args:
            prompt: 사용자 파트 프롬프트
            system_instruction: 고정 시스템 지시문 (출력 계약)
            file_bytes: 첨부 파일 원본 바이트 (SDK가 inline data로 전송)
            mime_type: 첨부 파일 MIME 타입 (image/* 또는 application/pdf)

        Returns:
            GenerationResult (text는 모델 원문 그대로)

        Raises:
            GenerationProviderError
        """
        ...
