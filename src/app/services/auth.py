"""
Authentication: identity provider 메시지 → 사용자 메시지 (pt-BR).

provider 원문을 부분 문자열로 분류한다.
가입 직후 이메일 확인이 필요한 경우는 에러가 아니라 안내 메시지로 처리.
"""

import logging
from enum import Enum

from src.app.providers.base import BackendError
from src.domain.errors import (
    AuthenticationError,
    ErrorCodes,
    RemoteUnavailableError,
    StudioError,
)

logger = logging.getLogger(__name__)


class AuthErrorCategory(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ALREADY_REGISTERED = "already_registered"
    WEAK_PASSWORD = "weak_password"
    CONFIRMATION_REQUIRED = "confirmation_required"
    PROVIDER_DISABLED = "provider_disabled"
    UNKNOWN = "unknown"


# (provider 원문 부분 문자열, 분류) - 위에서부터 먼저 맞는 것
_MESSAGE_PATTERNS: tuple[tuple[str, AuthErrorCategory], ...] = (
    ("Email logins are disabled", AuthErrorCategory.PROVIDER_DISABLED),
    ("Invalid login credentials", AuthErrorCategory.INVALID_CREDENTIALS),
    ("User already registered", AuthErrorCategory.ALREADY_REGISTERED),
    ("Password should be", AuthErrorCategory.WEAK_PASSWORD),
    ("Email confirmation required", AuthErrorCategory.CONFIRMATION_REQUIRED),
    ("Email not confirmed", AuthErrorCategory.CONFIRMATION_REQUIRED),
)

AUTH_ERROR_MESSAGES: dict[AuthErrorCategory, str] = {
    AuthErrorCategory.PROVIDER_DISABLED: (
        "O login por email está desativado no provedor de autenticação."
    ),
    AuthErrorCategory.INVALID_CREDENTIALS: (
        "Email ou senha incorretos (ou conta não confirmada). "
        "Verifique seu email ou cadastre-se."
    ),
    AuthErrorCategory.ALREADY_REGISTERED: (
        "Este email já está cadastrado. Tente fazer login."
    ),
    AuthErrorCategory.WEAK_PASSWORD: (
        "A senha é muito fraca. Use pelo menos 6 caracteres."
    ),
    AuthErrorCategory.CONFIRMATION_REQUIRED: (
        "Verifique seu email para confirmar sua conta antes de entrar."
    ),
    AuthErrorCategory.UNKNOWN: "Ocorreu um erro. Verifique suas credenciais.",
}

CONFIRMATION_SENT_MESSAGE = (
    "Cadastro realizado com sucesso! "
    "Verifique seu email para confirmar sua conta antes de entrar."
)
REMOTE_UNAVAILABLE_MESSAGE = (
    "Não foi possível conectar ao servidor. Verifique sua conexão e tente novamente."
)


def classify_auth_error(message: str | None) -> AuthErrorCategory:
    """provider 원문 → 분류."""
    if not message:
        return AuthErrorCategory.UNKNOWN
    for pattern, category in _MESSAGE_PATTERNS:
        if pattern in message:
            return category
    return AuthErrorCategory.UNKNOWN


def to_auth_error(error: BackendError) -> StudioError:
    """BackendError → AuthenticationError / RemoteUnavailableError."""
    if error.unreachable:
        return RemoteUnavailableError(
            ErrorCodes.REMOTE_UNAVAILABLE,
            REMOTE_UNAVAILABLE_MESSAGE,
            provider_code=error.code,
        )
    category = classify_auth_error(error.message)
    if category == AuthErrorCategory.UNKNOWN:
        logger.warning(f"Unmapped auth error from provider: {error.message}")
    return AuthenticationError(
        ErrorCodes.AUTH_FAILED,
        AUTH_ERROR_MESSAGES[category],
        category=category.value,
    )


def display_name(name: str | None, email: str) -> str:
    """표시 이름 (없으면 이메일 local part)."""
    if name and name.strip():
        return name.strip()
    return email.split("@")[0]
