"""Version bumping for the Claude plugin manifests."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from agentsync.logging import get_logger
from agentsync.release.exceptions import VersionError

logger = get_logger("release.version")

SEMVER_PATTERN = re.compile(
    r"^\d+\.\d+\.\d+"
    r"(-[a-zA-Z0-9]+(\.[a-zA-Z0-9]+)*)?"  # pre-release
    r"(\+[a-zA-Z0-9]+(\.[a-zA-Z0-9]+)*)?$"  # build metadata
)


@dataclass
class VersionBump:
    """Files updated by a version bump."""

    version: str
    updated: list[Path]


def is_valid_version(version: str) -> bool:
    """Check a version against semver with optional pre-release and build parts."""
    return bool(SEMVER_PATTERN.match(version))


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise VersionError(f"Manifest not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise VersionError(f"Invalid JSON in {path}: {e}") from e


def _write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def bump_version(version: str, manifest_path: Path, marketplace_path: Path) -> VersionBump:
    """Write a new version to the plugin and marketplace manifests.

    The plugin manifest is the source of truth; the marketplace's first plugin
    entry mirrors it.

    Args:
        version: New semver version.
        manifest_path: plugin.json path.
        marketplace_path: marketplace.json path.

    Returns:
        VersionBump listing the updated files.

    Raises:
        VersionError: If the version is invalid or a manifest is missing or malformed.
    """
    if not is_valid_version(version):
        raise VersionError(f"Invalid semver version: {version}")

    # Read both before writing either so a bad marketplace leaves plugin.json alone.
    manifest = _read_json(manifest_path)
    marketplace = _read_json(marketplace_path)

    if not isinstance(manifest, dict):
        raise VersionError(f"Manifest must be a JSON object: {manifest_path}")
    plugins = marketplace.get("plugins") if isinstance(marketplace, dict) else None
    if not plugins or not isinstance(plugins[0], dict):
        raise VersionError(f"No plugin entries in {marketplace_path}")

    manifest["version"] = version
    _write_json(manifest_path, manifest)
    logger.info("Updated %s -> %s", manifest_path, version)

    plugins[0]["version"] = version
    _write_json(marketplace_path, marketplace)
    logger.info("Updated %s -> %s", marketplace_path, version)

    return VersionBump(version=version, updated=[manifest_path, marketplace_path])
