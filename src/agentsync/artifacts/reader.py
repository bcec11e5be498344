"""Reading authored artifacts and their sidecar metadata."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from agentsync.artifacts.exceptions import ArtifactError, MetadataError
from agentsync.artifacts.models import Artifact, ArtifactKind

logger = logging.getLogger(__name__)

META_SUFFIX = ".meta.json"
SKILL_SOURCE_FILE = "SKILL.md"

_REQUIRED_FIELDS: dict[ArtifactKind, tuple[str, ...]] = {
    ArtifactKind.AGENT: ("name", "description"),
    ArtifactKind.COMMAND: ("description",),
    ArtifactKind.SKILL: (),
}


def meta_path_for(path: Path) -> Path:
    """Sidecar metadata path for a markdown file (``x.md`` -> ``x.md.meta.json``)."""
    return path.with_name(path.name + META_SUFFIX)


def read_artifact(path: Path | str, kind: ArtifactKind) -> Artifact:
    """Read an artifact and its sidecar metadata.

    Args:
        path: Markdown source file.
        kind: Artifact kind.

    Returns:
        The artifact, with empty metadata if there is no sidecar.

    Raises:
        ArtifactError: If the file is missing or the sidecar is not a JSON object.
    """
    path = Path(path)
    if not path.exists():
        raise ArtifactError(f"Artifact not found: {path}")

    content = path.read_text(encoding="utf-8")

    meta_path = meta_path_for(path)
    meta: dict[str, Any] = {}
    if meta_path.exists():
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ArtifactError(f"Invalid JSON in {meta_path}: {e}") from e
        if not isinstance(meta, dict):
            raise ArtifactError(f"Metadata in {meta_path} must be a JSON object")
    else:
        logger.debug("No metadata sidecar for %s", path)

    return Artifact(path=path, kind=kind, content=content, meta=meta)


def validate_meta(artifact: Artifact) -> None:
    """Check that required metadata fields are present and non-empty.

    Agents need ``name`` and ``description``; commands need ``description``.

    Raises:
        MetadataError: Naming the sidecar file and the missing fields.
    """
    missing = [f for f in _REQUIRED_FIELDS[artifact.kind] if not artifact.meta.get(f)]
    if missing:
        raise MetadataError(
            f"Missing required fields in {meta_path_for(artifact.path)}: {', '.join(missing)}"
        )


def list_markdown(source_dir: Path) -> list[Path]:
    """List markdown artifacts directly inside a folder, sorted by name."""
    return sorted(p for p in source_dir.iterdir() if p.is_file() and p.name.endswith(".md"))


def list_skill_dirs(skills_dir: Path) -> list[Path]:
    """List skill folders that contain a ``SKILL.md``, sorted by name."""
    skill_dirs = []
    for path in sorted(skills_dir.iterdir()):
        if not path.is_dir():
            continue
        if not (path / SKILL_SOURCE_FILE).exists():
            logger.warning("Skipping skill folder without %s: %s", SKILL_SOURCE_FILE, path)
            continue
        skill_dirs.append(path)
    return skill_dirs
