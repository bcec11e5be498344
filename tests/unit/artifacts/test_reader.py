"""Unit tests for reading artifacts and sidecar metadata."""

import json
from pathlib import Path

import pytest

from agentsync.artifacts.exceptions import ArtifactError, MetadataError
from agentsync.artifacts.models import ArtifactKind
from agentsync.artifacts.reader import (
    list_markdown,
    list_skill_dirs,
    meta_path_for,
    read_artifact,
    validate_meta,
)


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.mark.unit
class TestReadArtifact:
    """Tests for read_artifact."""

    def test_reads_content_and_meta(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "agents" / "ci-monitor.md", "# Monitor\n")
        _write(meta_path_for(source), json.dumps({"name": "ci-monitor", "description": "d"}))

        artifact = read_artifact(source, ArtifactKind.AGENT)

        assert artifact.content == "# Monitor\n"
        assert artifact.meta == {"name": "ci-monitor", "description": "d"}
        assert artifact.name == "ci-monitor"

    def test_missing_sidecar_gives_empty_meta(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "commands" / "fix.md", "Fix it")
        assert read_artifact(source, ArtifactKind.COMMAND).meta == {}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ArtifactError, match="Artifact not found"):
            read_artifact(tmp_path / "nope.md", ArtifactKind.COMMAND)

    def test_invalid_sidecar_json(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "fix.md", "Fix it")
        _write(meta_path_for(source), "{oops")

        with pytest.raises(ArtifactError, match="Invalid JSON"):
            read_artifact(source, ArtifactKind.COMMAND)

    def test_sidecar_must_be_object(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "fix.md", "Fix it")
        _write(meta_path_for(source), "[1]")

        with pytest.raises(ArtifactError, match="must be a JSON object"):
            read_artifact(source, ArtifactKind.COMMAND)

    def test_meta_path_for(self) -> None:
        assert meta_path_for(Path("a/b.md")) == Path("a/b.md.meta.json")


@pytest.mark.unit
class TestValidateMeta:
    """Tests for required metadata fields."""

    def test_agent_requires_name_and_description(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "agent.md", "Body")
        artifact = read_artifact(source, ArtifactKind.AGENT)

        with pytest.raises(MetadataError) as exc_info:
            validate_meta(artifact)

        message = str(exc_info.value)
        assert "agent.md.meta.json" in message
        assert message.endswith(": name, description")

    def test_command_requires_description(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "fix.md", "Body")
        _write(meta_path_for(source), json.dumps({"description": ""}))

        with pytest.raises(MetadataError, match="description"):
            validate_meta(read_artifact(source, ArtifactKind.COMMAND))

    def test_skill_needs_nothing(self, tmp_path: Path) -> None:
        source = _write(tmp_path / "monitor" / "SKILL.md", "Body")
        validate_meta(read_artifact(source, ArtifactKind.SKILL))


@pytest.mark.unit
class TestListing:
    """Tests for source folder listing."""

    def test_list_markdown_sorted(self, tmp_path: Path) -> None:
        _write(tmp_path / "b.md", "")
        _write(tmp_path / "a.md", "")
        _write(tmp_path / "a.md.meta.json", "{}")
        (tmp_path / "nested.md").mkdir()

        assert [p.name for p in list_markdown(tmp_path)] == ["a.md", "b.md"]

    def test_list_skill_dirs(self, tmp_path: Path) -> None:
        """Only folders with a SKILL.md are skills."""
        _write(tmp_path / "zeta" / "SKILL.md", "")
        _write(tmp_path / "alpha" / "SKILL.md", "")
        _write(tmp_path / "notes" / "README.md", "")
        _write(tmp_path / "loose.md", "")

        assert [p.name for p in list_skill_dirs(tmp_path)] == ["alpha", "zeta"]
