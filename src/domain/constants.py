"""
Domain Constants: 스튜디오 전역 상수.

플랜 한도, 업로드 정책, 저장소 테이블명 등 시스템 전반에서 사용되는 값들.
config(default.yaml)에 값이 있으면 config가 우선한다.
"""

# =============================================================================
# Plans (플랜 정책)
# =============================================================================
# free: artifact 최대 3개
# pro: 무제한 (만료일이 지나면 free로 취급)

FREE_PLAN_ARTIFACT_LIMIT = 3
PRO_GRANT_DAYS = 30

# =============================================================================
# Upload (업로드 정책)
# =============================================================================

ALLOWED_MIME_PREFIXES = ("image/",)
ALLOWED_MIME_TYPES = ("application/pdf",)
UPLOAD_MAX_SIZE_MB = 20

# =============================================================================
# Artifacts
# =============================================================================

DEFAULT_ARTIFACT_NAME = "Nova Criação"
EXPORT_FILENAME_SUFFIX = "_artifact.json"

# =============================================================================
# Remote Store (Supabase 테이블)
# =============================================================================

PROFILES_TABLE = "profiles"
ARTIFACTS_TABLE = "creations"

# =============================================================================
# Session
# =============================================================================

SESSION_COOKIE_NAME = "session_id"
RUN_ID_PREFIX = "RUN-"
SESSION_ID_PREFIX = "SES-"

# =============================================================================
# Preview Sandbox
# =============================================================================
# 생성된 HTML은 별도 origin 없이 sandbox CSP로만 서빙
# (allow-same-origin 금지: 앱 쿠키 접근 차단)

PREVIEW_CSP = "sandbox allow-scripts allow-forms allow-popups allow-modals"

# =============================================================================
# MIME Types
# =============================================================================

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".json": "application/json",
}


def get_mime_type(filename: str) -> str:
    """
    파일명에서 MIME 타입 추출.

    Args:
        filename: 파일명 (확장자 포함)

    Returns:
        MIME 타입 문자열 (알 수 없으면 octet-stream)
    """
    import os

    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "application/octet-stream")


def is_allowed_mime_type(mime_type: str | None) -> bool:
    """업로드 허용 MIME 타입인지 (image/* 또는 application/pdf)."""
    if not mime_type:
        return False
    mime_type = mime_type.lower()
    return mime_type.startswith(ALLOWED_MIME_PREFIXES) or mime_type in ALLOWED_MIME_TYPES
