"""
Artifact History: 세션의 artifact 목록 + active 포인터.

규칙:
- 항상 created_at 최신순 (도착 순서와 무관)
- 생성 → 맨 앞에 추가, 삭제 → id로 제거 (없는 id는 no-op)
- active artifact가 삭제되면 active 해제
- 원격 목록(authoritative)이 오면 로컬 목록을 통째로 교체 (fetch 순번이 최신일 때만)
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

from src.core.ids import export_filename, generate_artifact_id
from src.domain.errors import ErrorCodes, InputValidationError
from src.domain.schemas import Artifact, Reconciled, parse_timestamp

logger = logging.getLogger(__name__)

INVALID_IMPORT_MESSAGE = "Falha ao importar artefato. Certifique-se de que é um JSON válido."


class ArtifactHistory:
    """세션별 artifact 목록."""

    def __init__(self) -> None:
        self._items: Reconciled[list[Artifact]] = Reconciled(optimistic=[])
        self.active_id: str | None = None

    @property
    def items(self) -> list[Artifact]:
        return list(self._items.value)

    @property
    def version(self) -> int | None:
        return self._items.version

    @property
    def is_stale(self) -> bool:
        return self._items.is_stale

    @property
    def active(self) -> Artifact | None:
        if self.active_id is None:
            return None
        return self.get(self.active_id)

    def __len__(self) -> int:
        return len(self._items.value)

    def __contains__(self, artifact_id: object) -> bool:
        return any(a.id == artifact_id for a in self._items.value)

    def get(self, artifact_id: str) -> Artifact | None:
        for artifact in self._items.value:
            if artifact.id == artifact_id:
                return artifact
        return None

    def prepend(self, artifact: Artifact) -> None:
        """새 artifact 추가 (정렬 유지)."""
        items = [artifact] + [a for a in self._items.value if a.id != artifact.id]
        self._items.propose(_newest_first(items))

    def remove(self, artifact_id: str) -> bool:
        """
        id로 제거.

        Returns:
            제거 여부 (없는 id면 False)
        """
        items = self._items.value
        remaining = [a for a in items if a.id != artifact_id]
        if len(remaining) == len(items):
            return False
        self._items.propose(remaining)
        if self.active_id == artifact_id:
            self.active_id = None
        return True

    def confirm(self, artifacts: list[Artifact], version: int) -> bool:
        """
        원격 목록 반영.

        Returns:
            반영 여부 (더 오래된 fetch면 False)
        """
        accepted = self._items.confirm(_newest_first(artifacts), version)
        if not accepted:
            logger.debug(f"Ignoring stale artifact list (version {version})")
            return False
        if self.active_id is not None and self.active_id not in self:
            self.active_id = None
        return True

    def select(self, artifact_id: str) -> Artifact | None:
        artifact = self.get(artifact_id)
        if artifact is not None:
            self.active_id = artifact_id
        return artifact

    def clear(self) -> None:
        self._items = Reconciled(optimistic=[])
        self.active_id = None


def _newest_first(items: list[Artifact]) -> list[Artifact]:
    return sorted(items, key=lambda a: a.created_at, reverse=True)


# =============================================================================
# Import / Export
# =============================================================================

def export_artifact(artifact: Artifact) -> tuple[str, str]:
    """
    export 파일 생성.

    Returns:
        (파일명, JSON 문자열)
    """
    content = json.dumps(artifact.to_export(), ensure_ascii=False, indent=2)
    return export_filename(artifact.name), content


def parse_import(text: str | bytes, owner_id: str = "") -> Artifact:
    """
    import JSON 검증 + Artifact 변환.

    최소 조건: 비어 있지 않은 html, name 필드.
    id/timestamp가 없으면 새로 발급.

    Raises:
        InputValidationError: JSON이 아니거나 필수 필드 누락
    """
    try:
        data: Any = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InputValidationError(
            ErrorCodes.INVALID_IMPORT, INVALID_IMPORT_MESSAGE, reason="not_json"
        ) from e

    if not isinstance(data, dict):
        raise InputValidationError(
            ErrorCodes.INVALID_IMPORT, INVALID_IMPORT_MESSAGE, reason="not_object"
        )

    html = data.get("html")
    name = data.get("name")
    if not isinstance(html, str) or not html.strip():
        raise InputValidationError(
            ErrorCodes.INVALID_IMPORT, INVALID_IMPORT_MESSAGE, reason="missing_html"
        )
    if not isinstance(name, str) or not name.strip():
        raise InputValidationError(
            ErrorCodes.INVALID_IMPORT, INVALID_IMPORT_MESSAGE, reason="missing_name"
        )

    try:
        created_at = parse_timestamp(data.get("timestamp"))
    except (TypeError, ValueError):
        created_at = None

    original = data.get("originalImage")
    return Artifact(
        id=str(data.get("id") or generate_artifact_id()),
        owner_id=owner_id,
        name=name,
        html=html,
        original_input=original if isinstance(original, str) else None,
        created_at=created_at or datetime.now(UTC),
    )
