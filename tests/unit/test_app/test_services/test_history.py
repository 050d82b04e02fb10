"""
test_history.py - Artifact 히스토리 + import/export 테스트
"""

import json
from datetime import UTC, datetime, timedelta

import pytest

from src.app.services.history import ArtifactHistory, export_artifact, parse_import
from src.domain.errors import ErrorCodes, InputValidationError
from src.domain.schemas import Artifact

BASE = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def make_artifact(artifact_id: str, minutes: int = 0, name: str = "Criação") -> Artifact:
    return Artifact(
        id=artifact_id,
        owner_id="acc-1",
        name=name,
        html="<!DOCTYPE html><html></html>",
        created_at=BASE + timedelta(minutes=minutes),
    )


# =============================================================================
# 정렬 / 추가 / 삭제
# =============================================================================

class TestOrdering:

    def test_prepend_keeps_newest_first(self):
        history = ArtifactHistory()

        history.prepend(make_artifact("b", minutes=5))
        history.prepend(make_artifact("a", minutes=1))  # 늦게 도착한 오래된 항목
        history.prepend(make_artifact("c", minutes=9))

        assert [a.id for a in history.items] == ["c", "b", "a"]

    def test_prepend_same_timestamp_goes_first(self):
        history = ArtifactHistory()

        history.prepend(make_artifact("old"))
        history.prepend(make_artifact("new"))

        assert history.items[0].id == "new"

    def test_prepend_replaces_same_id(self):
        history = ArtifactHistory()
        history.prepend(make_artifact("a"))

        history.prepend(make_artifact("a", name="Outro"))

        assert len(history) == 1
        assert history.get("a").name == "Outro"


class TestRemove:

    def test_remove_unknown_is_noop(self):
        history = ArtifactHistory()
        history.prepend(make_artifact("a"))

        assert history.remove("zzz") is False
        assert len(history) == 1

    def test_remove_active_clears_pointer(self):
        history = ArtifactHistory()
        history.prepend(make_artifact("a"))
        history.select("a")

        assert history.remove("a") is True
        assert history.active_id is None
        assert history.active is None

    def test_remove_other_keeps_active(self):
        history = ArtifactHistory()
        history.prepend(make_artifact("a"))
        history.prepend(make_artifact("b", minutes=1))
        history.select("a")

        history.remove("b")

        assert history.active_id == "a"


# =============================================================================
# 원격 목록 반영
# =============================================================================

class TestConfirm:

    def test_authoritative_replaces_optimistic(self):
        history = ArtifactHistory()
        history.prepend(make_artifact("local"))
        assert history.is_stale

        history.confirm([make_artifact("r1", 1), make_artifact("r2", 2)], version=1)

        assert [a.id for a in history.items] == ["r2", "r1"]
        assert not history.is_stale

    def test_older_fetch_is_ignored(self):
        history = ArtifactHistory()
        history.confirm([make_artifact("new")], version=2)

        accepted = history.confirm([make_artifact("old")], version=1)

        assert accepted is False
        assert [a.id for a in history.items] == ["new"]

    def test_active_pointer_dropped_when_missing_remotely(self):
        history = ArtifactHistory()
        history.prepend(make_artifact("gone"))
        history.select("gone")

        history.confirm([make_artifact("other")], version=1)

        assert history.active_id is None

    def test_clear(self):
        history = ArtifactHistory()
        history.confirm([make_artifact("a")], version=3)
        history.select("a")

        history.clear()

        assert len(history) == 0
        assert history.active_id is None
        assert history.version is None


# =============================================================================
# Import / Export
# =============================================================================

class TestExport:

    def test_filename_and_fields(self):
        artifact = make_artifact("a", name="Meu Projeto!")
        artifact.original_input = "data:image/png;base64,AAAA"

        filename, content = export_artifact(artifact)
        data = json.loads(content)

        assert filename == "meu_projeto__artifact.json"
        assert data["id"] == "a"
        assert data["name"] == "Meu Projeto!"
        assert data["html"] == artifact.html
        assert data["originalImage"] == "data:image/png;base64,AAAA"
        assert "timestamp" in data

    def test_export_then_import_keeps_html_and_name(self):
        artifact = make_artifact("a", name="Relógio")

        _, content = export_artifact(artifact)
        imported = parse_import(content, owner_id="acc-2")

        assert imported.html == artifact.html
        assert imported.name == artifact.name
        assert imported.owner_id == "acc-2"


class TestParseImport:

    def test_minimal_document(self):
        artifact = parse_import('{"name": "X", "html": "<p>x</p>"}')

        assert artifact.name == "X"
        assert artifact.id
        assert artifact.original_input is None

    def test_bad_timestamp_is_regenerated(self):
        artifact = parse_import('{"name": "X", "html": "<p>x</p>", "timestamp": "ontem"}')

        assert artifact.created_at.tzinfo is not None

    @pytest.mark.parametrize(
        "text,reason",
        [
            ("not json", "not_json"),
            ("[1, 2]", "not_object"),
            ('{"name": "X"}', "missing_html"),
            ('{"name": "X", "html": "   "}', "missing_html"),
            ('{"html": "<p>x</p>"}', "missing_name"),
            ('{"html": "<p>x</p>", "name": ""}', "missing_name"),
        ],
    )
    def test_invalid(self, text, reason):
        with pytest.raises(InputValidationError) as exc_info:
            parse_import(text)

        assert exc_info.value.code == ErrorCodes.INVALID_IMPORT
        assert exc_info.value.context["reason"] == reason
