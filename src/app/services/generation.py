"""
Generation Service: 파일/프롬프트 → HTML 문서.

흐름:
1. 입력 검증 (MIME: image/* 또는 application/pdf, 크기 제한)
2. 원본 입력 data URI 생성 (base64 인코딩은 이벤트 루프 밖에서)
3. 사용자 프롬프트 결정 (파일 / 입력 문구 / 데모)
4. Provider 호출 (고정 시스템 지시문)
5. HTML 추출 (sentinel이면 GenerationError)

저장/게이팅은 하지 않음 (SessionReconciler 담당).
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from pathlib import Path

from src.app.providers.base import (
    GenerationProvider,
    GenerationProviderError,
    GenerationResult,
)
from src.app.providers.gemini import GeminiGenerationProvider
from src.app.services.extractor import extract_html_document, is_failure_sentinel
from src.domain.constants import (
    DEFAULT_ARTIFACT_NAME,
    UPLOAD_MAX_SIZE_MB,
    is_allowed_mime_type,
)
from src.domain.errors import ErrorCodes, GenerationError, InputValidationError
from src.domain.prompts import SYSTEM_INSTRUCTION, build_user_prompt
from src.domain.schemas import GenerationRequest

logger = logging.getLogger(__name__)

GENERATION_FAILED_MESSAGE = (
    "Algo deu errado ao dar vida ao seu arquivo. Por favor, tente novamente."
)
UNSUPPORTED_FILE_MESSAGE = "Por favor, envie uma imagem ou um PDF."


@dataclass
class GenerationOutcome:
    """생성 성공 결과 (아직 저장 전)."""
    name: str
    html: str
    original_input: str | None
    result: GenerationResult


class GenerationService:
    """
    생성 서비스.

    Provider 주입 가능 (테스트에서 가짜 provider 사용).
    """

    def __init__(
        self,
        config: dict,
        provider: GenerationProvider | None = None,
        prompts_dir: Path | None = None,
    ):
        """
        Args:
            config: 설정 (ai.gemini, upload 포함)
            provider: 생성 Provider (None이면 config 기반 Gemini)
            prompts_dir: system_instruction.txt override 디렉터리
        """
        self.config = config
        self.prompts_dir = prompts_dir
        self._system_instruction: str | None = None

        if provider is not None:
            self.provider = provider
        else:
            self.provider = GeminiGenerationProvider.from_config(config)

        upload_config = config.get("upload", {})
        self.max_size_bytes = int(
            upload_config.get("max_size_mb", UPLOAD_MAX_SIZE_MB) * 1024 * 1024
        )

    @property
    def system_instruction(self) -> str:
        """시스템 지시문 (prompts/system_instruction.txt가 있으면 우선, lazy)."""
        if self._system_instruction is None:
            override = (
                self.prompts_dir / "system_instruction.txt" if self.prompts_dir else None
            )
            if override is not None and override.exists():
                self._system_instruction = override.read_text(encoding="utf-8")
            else:
                self._system_instruction = SYSTEM_INSTRUCTION
        return self._system_instruction

    @property
    def model(self) -> str | None:
        return getattr(self.provider, "model", None)

    def validate(self, request: GenerationRequest) -> None:
        """
        입력 검증.

        Raises:
            InputValidationError: 지원하지 않는 형식, 크기 초과
        """
        if not request.has_file:
            return

        if not is_allowed_mime_type(request.mime_type):
            raise InputValidationError(
                ErrorCodes.UNSUPPORTED_FILE_TYPE,
                UNSUPPORTED_FILE_MESSAGE,
                mime_type=request.mime_type,
            )

        size = len(request.file_bytes or b"")
        if size > self.max_size_bytes:
            raise InputValidationError(
                ErrorCodes.FILE_TOO_LARGE,
                f"O arquivo excede o limite de {self.max_size_bytes // (1024 * 1024)} MB.",
                size=size,
                max_size=self.max_size_bytes,
            )

    async def generate(self, request: GenerationRequest) -> GenerationOutcome:
        """
        HTML 생성.

        Raises:
            InputValidationError: 입력 검증 실패
            GenerationError: provider 실패 또는 추출 결과가 sentinel
        """
        self.validate(request)

        original_input: str | None = None
        mime_type = request.mime_type.lower() if request.mime_type else None
        if request.has_file:
            encoded = await asyncio.to_thread(_encode, request.file_bytes or b"")
            original_input = request.to_data_uri(encoded)

        prompt = build_user_prompt(request.prompt, request.has_file)

        try:
            result = await self.provider.generate(
                prompt,
                self.system_instruction,
                request.file_bytes if request.has_file else None,
                mime_type if request.has_file else None,
            )
        except GenerationProviderError as e:
            logger.error(f"Generation provider failed: {e}")
            raise GenerationError(
                ErrorCodes.GENERATION_FAILED,
                e.message or GENERATION_FAILED_MESSAGE,
                provider_code=e.code,
            ) from e

        html = extract_html_document(result.text)
        if is_failure_sentinel(html):
            logger.warning(
                f"Model response had no usable HTML "
                f"(model_used={result.model_used}, hash={result.raw_output_hash})"
            )
            raise GenerationError(
                ErrorCodes.GENERATION_EMPTY,
                GENERATION_FAILED_MESSAGE,
                model_used=result.model_used,
            )

        return GenerationOutcome(
            name=request.filename or DEFAULT_ARTIFACT_NAME,
            html=html,
            original_input=original_input,
            result=result,
        )


def _encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
