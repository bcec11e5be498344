"""Data models for the artifact sync pipeline."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

ARGUMENTS_PLACEHOLDER = "$ARGUMENTS"


class ArtifactKind(StrEnum):
    """Kind of authored artifact, named after its source folder."""

    AGENT = "agents"
    COMMAND = "commands"
    SKILL = "skills"


@dataclass(frozen=True)
class Artifact:
    """An authored markdown artifact and its sidecar metadata.

    Attributes:
        path: Source markdown file.
        kind: Which folder the artifact came from.
        content: Markdown body, without frontmatter.
        meta: Metadata from ``<file>.meta.json`` (empty if there is none).
    """

    path: Path
    kind: ArtifactKind
    content: str
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Output base name: file stem, or the folder name for skills."""
        if self.kind == ArtifactKind.SKILL:
            return self.path.parent.name
        return self.path.stem


Renderer = Callable[[Artifact, "Platform"], str]


@dataclass(frozen=True)
class Platform:
    """Output layout and formatting rules for one downstream agent platform.

    Attributes:
        name: Platform identifier used in configuration.
        output_dir: Output folder under the generated directory.
        commands_dir: Folder for commands inside ``output_dir``.
        commands_ext: Extension replacing ``.md`` on commands.
        render_command: Renders a command file.
        render_skill: Renders a skill's main file.
        arguments_placeholder: Replacement for ``$ARGUMENTS``; None strips the lines.
        agents_dir: Folder for agents, None when agents are unsupported.
        agents_ext: Extension replacing ``.md`` on agents.
        render_agent: Renders an agent file.
        skills_dir: Folder for skills inside ``output_dir``.
        skill_file: File name of a skill's main file.
    """

    name: str
    output_dir: str
    commands_dir: str
    commands_ext: str
    render_command: Renderer
    render_skill: Renderer
    arguments_placeholder: str | None = ARGUMENTS_PLACEHOLDER
    agents_dir: str | None = None
    agents_ext: str = ".md"
    render_agent: Renderer | None = None
    skills_dir: str = "skills"
    skill_file: str = "SKILL.md"

    @property
    def supports_agents(self) -> bool:
        return self.agents_dir is not None and self.render_agent is not None


@dataclass
class PlatformReport:
    """Counts of files written for one platform."""

    platform: str
    output_path: Path
    agents: int = 0
    commands: int = 0
    skills: int = 0
    skipped: list[str] = field(default_factory=list)


@dataclass
class SyncReport:
    """Result of a sync run.

    Attributes:
        platforms: Per-platform counts, in processing order.
        copied_configs: Plugin config files copied into the Claude output.
        formatted: Whether the formatter command ran.
    """

    platforms: list[PlatformReport] = field(default_factory=list)
    copied_configs: list[str] = field(default_factory=list)
    formatted: bool = False


@dataclass
class DriftReport:
    """Unstaged differences between freshly generated output and the index."""

    changed_files: list[str] = field(default_factory=list)
    diff: str = ""

    @property
    def in_sync(self) -> bool:
        return not self.changed_files
