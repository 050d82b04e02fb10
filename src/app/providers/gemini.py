"""
Google Gemini Generation Provider.

Fallback 예외 정책:
- FALLBACK_ERRORS: NotFound, ServiceUnavailable, ResourceExhausted → fallback 모델
- REJECT_IMMEDIATELY: InvalidArgument, PermissionDenied, Unauthenticated → 즉시 reject

응답 원문은 그대로 반환한다. HTML 정리는 services/extractor.py 담당.
"""

import logging
import os
from datetime import UTC, datetime
from typing import Any

from .base import (
    GenerationProvider,
    GenerationProviderError,
    GenerationResult,
    compute_hash,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-pro-preview"
DEFAULT_FALLBACK = "gemini-2.5-flash"
DEFAULT_TEMPERATURE = 0.5

# =============================================================================
# Exception Mapping
# =============================================================================

FALLBACK_ERRORS: tuple[type[Exception], ...] = ()
REJECT_IMMEDIATELY: tuple[type[Exception], ...] = ()

# Google API 예외 동적 로드
try:
    from google.api_core.exceptions import (
        InvalidArgument,
        NotFound,
        PermissionDenied,
        ResourceExhausted,
        ServiceUnavailable,
        Unauthenticated,
    )

    FALLBACK_ERRORS = (
        NotFound,            # 모델명 오류/미지원
        ServiceUnavailable,  # 5xx
        ResourceExhausted,   # 429 쿼터/레이트리밋
    )

    REJECT_IMMEDIATELY = (
        InvalidArgument,    # 입력 오류
        PermissionDenied,   # 인증 오류
        Unauthenticated,    # API 키 오류
    )
except ImportError:
    pass


class GeminiGenerationProvider(GenerationProvider):
    """
    Gemini 생성 Provider.

    Usage:
        provider = GeminiGenerationProvider(
            model="gemini-3-pro-preview",
            fallback="gemini-2.5-flash",
        )
        result = await provider.generate(prompt, SYSTEM_INSTRUCTION, image_bytes, "image/png")
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        fallback: str | None = DEFAULT_FALLBACK,
        api_key: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ):
        """
        Args:
            model: 기본 모델 ID (config에서 주입)
            fallback: Fallback 모델 (None이면 재시도 없이 실패)
            api_key: API 키 (환경변수 GOOGLE_API_KEY 사용 가능)
            temperature: 샘플링 온도 (평범한 입력에도 창의성 확보)
        """
        self.model = model
        self.fallback = fallback
        self.api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        self.temperature = temperature
        self._client: Any = None

    @classmethod
    def from_config(cls, config: dict) -> "GeminiGenerationProvider":
        """config(ai.gemini)로 생성."""
        gemini_config = config.get("ai", {}).get("gemini", {})
        return cls(
            model=gemini_config.get("model", DEFAULT_MODEL),
            fallback=gemini_config.get("fallback", DEFAULT_FALLBACK),
            temperature=gemini_config.get("temperature", DEFAULT_TEMPERATURE),
        )

    def _get_client(self) -> Any:
        """Gemini 클라이언트 (lazy init)."""
        if self._client is None:
            if not self.api_key:
                raise GenerationProviderError(
                    "GEMINI_KEY_MISSING",
                    "Chave de API não configurada.",
                )
            try:
                import google.generativeai as genai
                genai.configure(api_key=self.api_key)
                self._client = genai
            except ImportError as e:
                raise GenerationProviderError(
                    "GEMINI_NOT_INSTALLED",
                    "google-generativeai package not installed. "
                    "Run: pip install google-generativeai",
                ) from e
        return self._client

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        file_bytes: bytes | None = None,
        mime_type: str | None = None,
    ) -> GenerationResult:
        """
        HTML 생성.

        Fallback 정책:
        - FALLBACK_ERRORS → fallback 모델로 재시도
        - REJECT_IMMEDIATELY → 즉시 에러
        """
        model_requested = self.model
        prompt_hash = compute_hash(prompt)

        # 1차 시도: 기본 모델
        try:
            result = await self._call_api(
                self.model, prompt, system_instruction, file_bytes, mime_type
            )
            result.model_requested = model_requested
            result.model_used = self.model
            result.fallback_triggered = False
            result.prompt_hash = prompt_hash
            return result

        except FALLBACK_ERRORS as e:
            logger.warning(
                f"Primary model ({self.model}) failed with fallback error: {e}. "
                f"Attempting fallback..."
            )

            if self.fallback is None:
                raise GenerationProviderError(
                    "NO_FALLBACK",
                    self._get_user_friendly_error_message(e),
                    model=self.model,
                ) from e

            try:
                logger.info(f"Trying fallback model: {self.fallback}")
                result = await self._call_api(
                    self.fallback, prompt, system_instruction, file_bytes, mime_type
                )
                result.model_requested = model_requested
                result.model_used = self.fallback
                result.fallback_triggered = True
                result.prompt_hash = prompt_hash
                logger.info("Fallback model succeeded")
                return result
            except Exception as fallback_error:
                logger.error(f"Fallback model also failed: {fallback_error}")
                raise GenerationProviderError(
                    "FALLBACK_FAILED",
                    f"{self._get_user_friendly_error_message(fallback_error)} "
                    f"O modelo principal e o modelo reserva falharam.",
                    primary_model=self.model,
                    fallback_model=self.fallback,
                ) from fallback_error

        except REJECT_IMMEDIATELY as e:
            logger.error(f"Authentication or input error: {e}", exc_info=True)
            raise GenerationProviderError(
                "AUTH_OR_INPUT_ERROR",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

        except GenerationProviderError:
            raise

        except Exception as e:
            logger.error(f"Generation failed with unexpected error: {e}", exc_info=True)
            raise GenerationProviderError(
                "GENERATION_FAILED",
                self._get_user_friendly_error_message(e),
                model=self.model,
            ) from e

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """사용자 친화적인 에러 메시지 생성 (pt-BR)."""
        try:
            from google.api_core.exceptions import (
                InvalidArgument,
                PermissionDenied,
                ResourceExhausted,
                ServiceUnavailable,
                Unauthenticated,
            )

            if isinstance(error, Unauthenticated):
                return "Falha na autenticação com a API do Google. Verifique a GOOGLE_API_KEY."
            elif isinstance(error, PermissionDenied):
                return "Sem permissão para esta operação. Verifique as permissões da chave de API."
            elif isinstance(error, ResourceExhausted):
                return "Limite de uso da API excedido. Tente novamente em instantes."
            elif isinstance(error, ServiceUnavailable):
                return "Serviço do Google temporariamente indisponível. Tente novamente."
            elif isinstance(error, InvalidArgument):
                return "Requisição inválida. Verifique o formato e o tamanho do arquivo."
        except ImportError:
            pass

        error_str = str(error).lower()
        if "api_key" in error_str or "api key" in error_str:
            return "Verifique a configuração da chave de API."
        elif "quota" in error_str or "limit" in error_str:
            return "Limite de uso da API excedido. Tente novamente em instantes."
        elif "connection" in error_str:
            return "Erro de conexão com a rede."
        elif "timeout" in error_str:
            return "A requisição expirou. Tente novamente."

        return "Algo deu errado ao dar vida ao seu arquivo. Por favor, tente novamente."

    async def _call_api(
        self,
        model: str,
        prompt: str,
        system_instruction: str,
        file_bytes: bytes | None,
        mime_type: str | None,
    ) -> GenerationResult:
        """실제 Gemini API 호출 (예외는 상위 fallback 정책으로 전파)."""
        genai = self._get_client()

        model_instance = genai.GenerativeModel(
            model,
            system_instruction=system_instruction,
            generation_config={"temperature": self.temperature},
        )

        parts: list[Any] = [prompt]
        if file_bytes and mime_type:
            parts.append({"mime_type": mime_type, "data": file_bytes})

        response = await model_instance.generate_content_async(parts)

        text = self._response_text(response)
        return GenerationResult(
            success=bool(text),
            text=text,
            generated_at=datetime.now(UTC).isoformat(),
            raw_output_hash=compute_hash(text) if text else None,
        )

    def _response_text(self, response: Any) -> str:
        """
        응답 텍스트 추출.

        안전 필터 등으로 후보가 없으면 response.text가 ValueError를 던짐 → 빈 문자열.
        """
        try:
            text = response.text
        except ValueError as e:
            logger.warning(f"Gemini response had no text part: {e}")
            return ""
        return text or ""
