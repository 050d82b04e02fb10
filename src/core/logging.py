"""
Run logging: 생성 시도 1건마다 run log 1건.

규칙:
- 성공/실패/거절 모두 기록
- 원문 프롬프트/응답은 저장하지 않음 (hash만)
- 로그 저장 실패는 경고만 남기고 사용자 액션을 실패시키지 않음
"""

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.ids import generate_run_id
from src.core.storage import atomic_write_json, read_json
from src.domain.schemas import GenerationRunLog, RunWarning

logger = logging.getLogger(__name__)


def create_run_log(session_id: str, account_id: str | None = None) -> GenerationRunLog:
    """
    새 run log 생성.

    Args:
        session_id: 브라우저 세션 ID
        account_id: 계정 ID (인증 전이면 None)

    Returns:
        초기화된 GenerationRunLog
    """
    return GenerationRunLog(
        run_id=generate_run_id(),
        session_id=session_id,
        account_id=account_id,
        started_at=datetime.now(UTC).isoformat(),
    )


def emit_warning(
    run_log: GenerationRunLog,
    code: str,
    action_id: str,
    message: str,
) -> None:
    """경고 이벤트 기록."""
    run_log.warnings.append(
        RunWarning(code=code, action_id=action_id, message=message)
    )


def complete_run_log(
    run_log: GenerationRunLog,
    result: str,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    run log 완료 처리.

    Args:
        run_log: GenerationRunLog 인스턴스
        result: "success", "failed", "rejected"
        error_code: 에러 코드 (실패/거절 시)
        error_context: 에러 컨텍스트 (실패/거절 시)
    """
    run_log.finished_at = datetime.now(UTC).isoformat()
    run_log.result = result

    if result != "success":
        run_log.error_code = error_code
        run_log.error_context = error_context


def save_run_log(run_log: GenerationRunLog, logs_dir: Path) -> Path | None:
    """
    run log를 파일로 저장.

    Returns:
        저장된 파일 경로 (실패 시 None)
    """
    log_path = logs_dir / f"run_{run_log.run_id}.json"
    try:
        atomic_write_json(log_path, run_log.to_dict())
    except (OSError, TypeError, ValueError) as e:
        logger.warning(f"Failed to save run log {run_log.run_id}: {e}")
        return None
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    """run log 파일 로드."""
    return read_json(log_path)


def list_run_logs(logs_dir: Path) -> list[Path]:
    """
    logs/ 디렉터리의 모든 run log 파일 목록.

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob("run_*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
