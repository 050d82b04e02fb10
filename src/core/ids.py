"""
ID 생성: run_id, session_id, artifact_id + export 파일명.

규칙:
- run_id: 생성 시도마다 새로 발급
- session_id: 브라우저 세션 쿠키 값 (추측 불가능해야 함)
- artifact_id: 원격 저장소가 발급하지 않는 백엔드(memory)에서만 사용
"""

import re
import secrets
import uuid
from datetime import UTC, datetime

from src.domain.constants import (
    EXPORT_FILENAME_SUFFIX,
    RUN_ID_PREFIX,
    SESSION_ID_PREFIX,
)


def generate_run_id() -> str:
    """
    Run ID 생성.

    고유성 보장: UUID v4
    포맷: RUN-{timestamp}-{uuid[:8]}

    Returns:
        run_id 문자열
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"{RUN_ID_PREFIX}{timestamp}-{unique}"


def generate_session_id() -> str:
    """세션 ID 생성 (SES-{random 32 hex})."""
    return f"{SESSION_ID_PREFIX}{secrets.token_hex(16)}"


def generate_artifact_id() -> str:
    """Artifact ID 생성 (UUID v4 문자열)."""
    return str(uuid.uuid4())


def export_filename(name: str) -> str:
    """
    export 다운로드 파일명.

    - 영숫자 외 문자 → 밑줄
    - 소문자
    - 접미사: _artifact.json

    예: "Meu Projeto!" → "meu_projeto__artifact.json"
    """
    safe = re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE).lower()
    return f"{safe or 'artifact'}{EXPORT_FILENAME_SUFFIX}"
