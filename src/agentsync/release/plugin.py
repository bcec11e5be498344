"""Claude plugin build - copies artifact folders into the plugin directory."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from agentsync.artifacts.models import ArtifactKind
from agentsync.logging import get_logger
from agentsync.release.exceptions import PluginBuildError

logger = get_logger("release.plugin")

PLUGIN_FOLDERS = (ArtifactKind.AGENT, ArtifactKind.SKILL, ArtifactKind.COMMAND)


@dataclass
class PluginBuild:
    """Folders copied into, and skipped for, the plugin directory."""

    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def build_claude_plugin(artifacts_path: Path, plugin_path: Path) -> PluginBuild:
    """Replace the plugin's agents, skills and commands with fresh copies.

    Existing destination folders are removed first; folders with no source are
    left removed and reported as skipped.

    Raises:
        PluginBuildError: If a folder cannot be removed or copied.
    """
    build = PluginBuild()
    for kind in PLUGIN_FOLDERS:
        source = artifacts_path / kind.value
        dest = plugin_path / kind.value
        try:
            if dest.exists():
                shutil.rmtree(dest)
            if not source.is_dir():
                logger.info("Skipped %s/ (source does not exist)", kind.value)
                build.skipped.append(kind.value)
                continue
            shutil.copytree(source, dest)
        except OSError as e:
            raise PluginBuildError(f"Failed to copy {kind.value}/ into {plugin_path}: {e}") from e
        logger.info("Copied %s/ to %s/%s/", kind.value, plugin_path.name, kind.value)
        build.copied.append(kind.value)
    return build
