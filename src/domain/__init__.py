"""Domain layer: errors, schemas, prompts."""

from .errors import ErrorCodes, StudioError
from .schemas import (
    Account,
    Artifact,
    GenerationRequest,
    GenerationRunLog,
    Plan,
    Reconciled,
    Role,
    UsageSummary,
)

__all__ = [
    "ErrorCodes",
    "StudioError",
    "Account",
    "Artifact",
    "GenerationRequest",
    "GenerationRunLog",
    "Plan",
    "Reconciled",
    "Role",
    "UsageSummary",
]
