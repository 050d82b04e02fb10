"""
Core layer: ID, 원자적 저장, run log.

역할:
- 생성 시도 추적 (run log)
- 로컬 JSON 파일의 원자적 쓰기
"""

from .ids import export_filename, generate_artifact_id, generate_run_id, generate_session_id
from .logging import complete_run_log, create_run_log, emit_warning, save_run_log
from .storage import atomic_write_json

__all__ = [
    # ids
    "generate_run_id",
    "generate_session_id",
    "generate_artifact_id",
    "export_filename",
    # logging
    "create_run_log",
    "emit_warning",
    "complete_run_log",
    "save_run_log",
    # storage
    "atomic_write_json",
]
