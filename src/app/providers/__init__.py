"""
Provider Abstraction.

- 생성 모델: GenerationProvider (Gemini)
- 인증/저장소: StudioBackend (Supabase, in-memory)

모델명/백엔드 선택은 config만 SSOT.
"""

from .backend import AuthSession, IdentityProvider, RecordStore, StudioBackend, create_backend
from .base import BackendError, GenerationProvider, GenerationProviderError, GenerationResult
from .gemini import GeminiGenerationProvider
from .memory import MemoryBackend, MemoryDatabase

__all__ = [
    "AuthSession",
    "BackendError",
    "GenerationProvider",
    "GenerationProviderError",
    "GenerationResult",
    "GeminiGenerationProvider",
    "IdentityProvider",
    "MemoryBackend",
    "MemoryDatabase",
    "RecordStore",
    "StudioBackend",
    "create_backend",
]
