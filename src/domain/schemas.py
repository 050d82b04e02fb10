"""
Data schemas for the studio.

규칙:
- 시간 값은 항상 timezone-aware (UTC)
- Account는 원격 profile의 캐시 사본 (stale 가능)
- Artifact는 생성 후 불변 (삭제만 가능)
- GenerationRequest는 저장하지 않음 (1회 생성 시도 동안만 존재)
"""

import base64
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# =============================================================================
# Plan / Role
# =============================================================================

class Plan(str, Enum):
    """계정 플랜."""
    FREE = "free"
    PRO = "pro"

    @classmethod
    def parse(cls, value: str | None) -> "Plan":
        """원격 값 정규화 (대소문자/누락 허용, 모르는 값은 free)."""
        normalized = (value or "free").strip().lower()
        return cls.PRO if normalized == cls.PRO.value else cls.FREE


class Role(str, Enum):
    """권한 claim (profile.role)."""
    USER = "user"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        normalized = (value or "user").strip().lower()
        return cls.ADMIN if normalized == cls.ADMIN.value else cls.USER


def parse_timestamp(value: Any) -> datetime | None:
    """ISO 8601 문자열/datetime → aware datetime (naive는 UTC로 간주)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# =============================================================================
# Account
# =============================================================================

@dataclass
class Account:
    """
    계정 (identity provider 소유).

    불변식: pro + 만료일 과거 → 로컬 게이팅에서는 free로 취급.
    원격 레코드는 클라이언트가 수정하지 않음.
    """
    id: str
    email: str
    name: str
    plan: Plan = Plan.FREE
    pro_expires_at: datetime | None = None
    role: Role = Role.USER
    created_at: datetime | None = None

    def effective_plan(self, now: datetime) -> Plan:
        """읽는 시점 기준 플랜 (만료 반영)."""
        if self.plan == Plan.PRO and self.is_pro_expired(now):
            return Plan.FREE
        return self.plan

    def is_pro_expired(self, now: datetime) -> bool:
        return (
            self.plan == Plan.PRO
            and self.pro_expires_at is not None
            and self.pro_expires_at <= now
        )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> dict[str, Any]:
        """profile row 형식."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "plan": self.plan.value,
            "pro_expires_at": (
                self.pro_expires_at.isoformat() if self.pro_expires_at else None
            ),
            "role": self.role.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        email = data.get("email") or ""
        return cls(
            id=str(data["id"]),
            email=email,
            name=data.get("name") or data.get("full_name") or email.split("@")[0],
            plan=Plan.parse(data.get("plan")),
            pro_expires_at=parse_timestamp(data.get("pro_expires_at")),
            role=Role.parse(data.get("role")),
            created_at=parse_timestamp(data.get("created_at")),
        )


# =============================================================================
# Artifact
# =============================================================================

@dataclass
class Artifact:
    """
    생성 결과물.

    생성 성공 후에만 만들어지고, 이후 삭제 외에는 변경하지 않음.
    """
    id: str
    owner_id: str
    name: str
    html: str
    original_input: str | None = None  # data:<mime>;base64,...
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_record(self) -> dict[str, Any]:
        """record store row 형식."""
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "name": self.name,
            "html": self.html,
            "original_image": self.original_input,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, row: dict[str, Any]) -> "Artifact":
        return cls(
            id=str(row["id"]),
            owner_id=str(row.get("user_id") or ""),
            name=row.get("name") or "",
            html=row.get("html") or "",
            original_input=row.get("original_image"),
            created_at=parse_timestamp(row.get("created_at")) or datetime.now(UTC),
        )

    def to_export(self) -> dict[str, Any]:
        """export JSON 형식 (브라우저 버전과 호환되는 키)."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "html": self.html,
            "timestamp": self.created_at.isoformat(),
        }
        if self.original_input:
            data["originalImage"] = self.original_input
        return data


# =============================================================================
# Generation Request
# =============================================================================

@dataclass
class GenerationRequest:
    """
    생성 요청 (저장하지 않음).

    prompt와 파일 중 하나 이상 포함.
    """
    prompt: str = ""
    file_bytes: bytes | None = None
    mime_type: str | None = None
    filename: str | None = None

    @property
    def has_file(self) -> bool:
        return bool(self.file_bytes)

    @property
    def is_empty(self) -> bool:
        return not self.prompt.strip() and not self.has_file

    def to_data_uri(self, encoded: str | None = None) -> str | None:
        """원본 입력 data URI (파일 없으면 None)."""
        if not self.has_file or not self.mime_type:
            return None
        if encoded is None:
            encoded = base64.b64encode(self.file_bytes or b"").decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


# =============================================================================
# Two-Phase Value (optimistic / authoritative)
# =============================================================================

@dataclass
class Reconciled(Generic[T]):
    """
    낙관적 로컬 값 + 원격 확정 값.

    - value: authoritative가 있으면 항상 authoritative
    - propose(): optimistic만 변경, authoritative는 무효화 (다음 fetch 필요)
    - confirm(): 원격 fetch 결과만 authoritative로 기록
    - version: fetch 발행 순번. 더 오래된 fetch 결과는 무시
    """
    optimistic: T
    authoritative: T | None = None
    version: int | None = None

    @property
    def value(self) -> T:
        if self.authoritative is not None:
            return self.authoritative
        return self.optimistic

    @property
    def is_stale(self) -> bool:
        return self.authoritative is None

    def propose(self, value: T) -> None:
        self.optimistic = value
        self.authoritative = None

    def confirm(self, value: T, version: int) -> bool:
        """
        원격 값 반영.

        Returns:
            반영 여부 (오래된 fetch면 False)
        """
        if self.version is not None and version < self.version:
            return False
        self.authoritative = value
        self.optimistic = value
        self.version = version
        return True


# =============================================================================
# Usage Summary (대시보드 표시용)
# =============================================================================

@dataclass
class UsageSummary:
    """플랜/사용량 요약."""
    plan: Plan
    used: int
    limit: int | None  # None = 무제한
    pro_expires_at: datetime | None = None
    days_remaining: int | None = None

    @property
    def limit_reached(self) -> bool:
        return self.limit is not None and self.used >= self.limit

    @property
    def percentage(self) -> float:
        # pro는 무제한이지만 막대 표시를 위해 100 기준으로 스케일
        scale = self.limit if self.limit is not None else 100
        if scale <= 0:
            return 100.0
        return min(100.0, self.used / scale * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.value,
            "used": self.used,
            "limit": self.limit,
            "percentage": round(self.percentage, 1),
            "limit_reached": self.limit_reached,
            "pro_expires_at": (
                self.pro_expires_at.isoformat() if self.pro_expires_at else None
            ),
            "days_remaining": self.days_remaining,
        }


# =============================================================================
# Run Log Schemas (core/logging.py에서 사용)
# =============================================================================

@dataclass
class RunWarning:
    """실행 중 경고."""
    level: str = "warning"
    code: str = ""
    action_id: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "action_id": self.action_id,
            "message": self.message,
        }


@dataclass
class GenerationRunLog:
    """
    생성 실행 로그.

    생성 시도 1건 = run 1건 (성공/실패/거절 모두 기록).
    """
    run_id: str
    session_id: str
    started_at: str  # ISO 8601
    account_id: str | None = None
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed, rejected

    # 입력 요약 (원문 저장 안 함)
    input_mime_type: str | None = None
    input_size: int | None = None
    prompt_hash: str | None = None

    # 모델 추적
    model_requested: str | None = None
    model_used: str | None = None
    fallback_triggered: bool = False
    raw_output_hash: str | None = None

    # 결과
    artifact_id: str | None = None
    saved: bool = False

    warnings: list[RunWarning] = field(default_factory=list)

    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "session_id": self.session_id,
            "account_id": self.account_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "input_mime_type": self.input_mime_type,
            "input_size": self.input_size,
            "prompt_hash": self.prompt_hash,
            "model_requested": self.model_requested,
            "model_used": self.model_used,
            "fallback_triggered": self.fallback_triggered,
            "raw_output_hash": self.raw_output_hash,
            "artifact_id": self.artifact_id,
            "saved": self.saved,
            "warnings": [w.to_dict() for w in self.warnings],
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
