"""
Error definitions for the studio.

에러 분류 (사용자 액션 단위로 처리):
- 입력 검증 (파일 형식, import JSON) → 상태 변경 없음
- 인증 (잘못된 자격 증명, 중복 가입, 약한 비밀번호, 미확인 계정)
- 쿼터 (free 플랜 한도 도달) → 네트워크 오류 아님
- 생성 (엔드포인트 실패, 빈/깨진 응답) → 부분 artifact 저장 금지
- 저장 (record store insert/delete 실패) → 생성 오류와 구분

모든 에러는 사용자 메시지로 끝나고, 이전의 유효한 상태로 복귀한다.
"""

from typing import Any


class StudioError(Exception):
    """
    스튜디오 에러 기본 클래스.

    Usage:
        raise QuotaExceededError(ErrorCodes.FREE_PLAN_LIMIT, "...", used=3, limit=3)
    """

    def __init__(self, code: str, message: str = "", **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        text = f"[{self.code}] {self.message}".rstrip()
        return f"{text} ({ctx_str})" if ctx_str else text

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            "message": self.message,
            **self.context,
        }


class InputValidationError(StudioError):
    """잘못된 파일 형식, 깨진 import JSON 등."""
    pass


class AuthenticationError(StudioError):
    """
    인증 실패.

    category: AuthErrorCategory 값 (provider 메시지에서 매핑됨)
    """

    def __init__(
        self, code: str, message: str = "", category: str | None = None, **context: Any
    ) -> None:
        self.category = category
        super().__init__(code, message, category=category, **context)


class PermissionDeniedError(StudioError):
    """권한 없음 (관리자 전용 작업 등)."""
    pass


class QuotaExceededError(StudioError):
    """플랜 한도 도달."""
    pass


class GenerationError(StudioError):
    """생성 실패 (재시도 가능)."""
    pass


class GenerationInProgressError(StudioError):
    """세션당 동시 생성은 1건만 허용."""
    pass


class PersistenceError(StudioError):
    """
    저장 실패.

    생성 자체는 성공했을 수 있으므로 GenerationError와 구분.
    """
    pass


class RemoteUnavailableError(StudioError):
    """원격 저장소/인증 서버 연결 불가."""
    pass


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Input ===
    UNSUPPORTED_FILE_TYPE = "UNSUPPORTED_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_IMPORT = "INVALID_IMPORT"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"

    # === Auth ===
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    NOT_ADMIN = "NOT_ADMIN"

    # === Quota ===
    FREE_PLAN_LIMIT = "FREE_PLAN_LIMIT"

    # === Generation ===
    GENERATION_FAILED = "GENERATION_FAILED"
    GENERATION_EMPTY = "GENERATION_EMPTY"
    GENERATION_IN_PROGRESS = "GENERATION_IN_PROGRESS"

    # === Persistence / Remote ===
    PERSIST_FAILED = "PERSIST_FAILED"
    DELETE_FAILED = "DELETE_FAILED"
    REMOTE_UNAVAILABLE = "REMOTE_UNAVAILABLE"
