"""
Application Services.

역할:
- extractor: 모델 원문 → HTML 문서
- entitlement: 세션 단계 + 생성 가능 여부
- history: artifact 목록 + import/export
- generation: 파일/프롬프트 → HTML (provider 호출)
- auth: identity provider 에러 → 사용자 메시지
- admin: 사용자 목록/플랜 토글/삭제
- session: 세션 상태 조정 (SessionReconciler)
"""

from .admin import AdminService
from .extractor import FAILURE_SENTINEL, extract_html_document, is_failure_sentinel
from .generation import GenerationService
from .history import ArtifactHistory
from .session import SessionReconciler, SessionRegistry

__all__ = [
    "AdminService",
    "ArtifactHistory",
    "FAILURE_SENTINEL",
    "GenerationService",
    "SessionReconciler",
    "SessionRegistry",
    "extract_html_document",
    "is_failure_sentinel",
]
