"""
FastAPI Routes.

페이지 라우트 (HTML) + API 라우트 (REST)
"""

from . import admin, artifacts, auth, generate, pages

__all__ = ["admin", "artifacts", "auth", "generate", "pages"]
