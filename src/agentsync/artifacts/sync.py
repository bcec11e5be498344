"""ArtifactSyncer - Renders authored artifacts into per-platform output trees."""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from agentsync.artifacts.exceptions import DriftCheckError, FormatError
from agentsync.artifacts.models import (
    ArtifactKind,
    DriftReport,
    Platform,
    PlatformReport,
    SyncReport,
)
from agentsync.artifacts.platforms import CLAUDE, get_platforms
from agentsync.artifacts.reader import (
    META_SUFFIX,
    SKILL_SOURCE_FILE,
    list_markdown,
    list_skill_dirs,
    read_artifact,
    validate_meta,
)
from agentsync.logging import get_logger, truncate_output

if TYPE_CHECKING:
    from agentsync.config import AgentSyncConfig

logger = get_logger("artifacts.sync")

CLAUDE_CONFIG_DIR = "claude-config"
# Files copied verbatim from claude-config into the Claude plugin output.
CLAUDE_CONFIG_FILES = (
    Path(".claude-plugin") / "plugin.json",
    Path(".mcp.json"),
)


class ArtifactSyncer:
    """Generates every enabled platform's output from the artifacts folder.

    The generated directory is recreated from scratch on every sync, so
    anything not produced from artifacts is removed.
    """

    def __init__(
        self,
        config: AgentSyncConfig,
        platforms: Sequence[Platform] | None = None,
    ) -> None:
        """Initialize the syncer.

        Args:
            config: Project configuration.
            platforms: Platforms to render; defaults to those enabled in config.
        """
        self.config = config
        if platforms is None:
            platforms = get_platforms(config.platforms)
        self.platforms = list(platforms)
        self.root_path = config.root_path
        self.artifacts_path = config.get_artifacts_path()
        self.generated_path = config.get_generated_path()

    def _run(self, *args: str) -> str:
        """Run a command from the project root.

        Returns:
            Command stdout

        Raises:
            subprocess.CalledProcessError: If command fails
        """
        result = subprocess.run(
            list(args),
            cwd=self.root_path,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def sync(self, format_output: bool = True) -> SyncReport:
        """Regenerate all platform outputs.

        Args:
            format_output: Whether to run the configured formatter afterwards.

        Returns:
            SyncReport with per-platform counts.

        Raises:
            ArtifactError: If an artifact or its metadata is invalid.
            FormatError: If the formatter fails.
        """
        logger.info("Syncing artifacts to %s", self.generated_path)
        self._recreate_dir(self.generated_path)

        report = SyncReport()
        for platform in self.platforms:
            report.platforms.append(self._sync_platform(platform))

        if any(p.name == CLAUDE.name for p in self.platforms):
            report.copied_configs = self._copy_claude_configs()

        if format_output:
            report.formatted = self._format()

        logger.info("Sync complete (%d platforms)", len(report.platforms))
        return report

    def check(self, format_output: bool = True) -> DriftReport:
        """Sync, then report generated files that differ from the git index.

        Args:
            format_output: Run the configured formatter before diffing.

        Raises:
            DriftCheckError: If git cannot produce a diff.
        """
        self.sync(format_output=format_output)

        target = self._relative(self.generated_path)
        logger.info("Checking %s for unstaged changes", target)
        try:
            changed = self._run("git", "diff", "--name-only", "--", target)
            diff = self._run("git", "diff", "--", target) if changed else ""
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            stderr = getattr(e, "stderr", None) or str(e)
            raise DriftCheckError(f"Failed to diff {target}: {stderr}") from e

        drift = DriftReport(changed_files=changed.splitlines() if changed else [], diff=diff)
        if drift.in_sync:
            logger.info("All generated artifacts are up to date")
        else:
            logger.warning("%d generated file(s) out of sync", len(drift.changed_files))
            logger.debug("Drift diff:\n%s", truncate_output(diff))
        return drift

    def _sync_platform(self, platform: Platform) -> PlatformReport:
        output_path = self.generated_path / platform.output_dir
        output_path.mkdir(parents=True, exist_ok=True)
        logger.info("[%s] -> %s", platform.name, self._relative(output_path))

        report = PlatformReport(platform=platform.name, output_path=output_path)
        report.agents = self._sync_agents(platform, output_path, report)
        report.commands = self._sync_commands(platform, output_path, report)
        report.skills = self._sync_skills(platform, output_path, report)
        return report

    def _source_dir(self, kind: ArtifactKind, report: PlatformReport) -> Path | None:
        source = self.artifacts_path / kind.value
        if not source.is_dir():
            logger.info("  Skipped %s/ (source does not exist)", kind.value)
            report.skipped.append(kind.value)
            return None
        return source

    def _sync_agents(self, platform: Platform, output_path: Path, report: PlatformReport) -> int:
        if not platform.supports_agents:
            return 0
        source = self._source_dir(ArtifactKind.AGENT, report)
        if source is None:
            return 0

        dest_dir = output_path / platform.agents_dir
        dest_dir.mkdir(parents=True, exist_ok=True)

        files = list_markdown(source)
        for path in files:
            artifact = read_artifact(path, ArtifactKind.AGENT)
            validate_meta(artifact)
            dest = dest_dir / f"{artifact.name}{platform.agents_ext}"
            dest.write_text(platform.render_agent(artifact, platform), encoding="utf-8")

        logger.info("  Processed %d agent(s) -> %s/", len(files), platform.agents_dir)
        return len(files)

    def _sync_commands(self, platform: Platform, output_path: Path, report: PlatformReport) -> int:
        source = self._source_dir(ArtifactKind.COMMAND, report)
        if source is None:
            return 0

        dest_dir = output_path / platform.commands_dir
        dest_dir.mkdir(parents=True, exist_ok=True)

        files = list_markdown(source)
        for path in files:
            artifact = read_artifact(path, ArtifactKind.COMMAND)
            validate_meta(artifact)
            dest = dest_dir / f"{artifact.name}{platform.commands_ext}"
            dest.write_text(platform.render_command(artifact, platform), encoding="utf-8")

        logger.info("  Processed %d command(s) -> %s/", len(files), platform.commands_dir)
        return len(files)

    def _sync_skills(self, platform: Platform, output_path: Path, report: PlatformReport) -> int:
        source = self._source_dir(ArtifactKind.SKILL, report)
        if source is None:
            return 0

        dest_root = output_path / platform.skills_dir
        skill_dirs = list_skill_dirs(source)
        for skill_dir in skill_dirs:
            dest_dir = dest_root / skill_dir.name
            # Scripts and references ship alongside the skill file.
            shutil.copytree(
                skill_dir,
                dest_dir,
                ignore=shutil.ignore_patterns(SKILL_SOURCE_FILE, f"*{META_SUFFIX}"),
                dirs_exist_ok=True,
            )
            artifact = read_artifact(skill_dir / SKILL_SOURCE_FILE, ArtifactKind.SKILL)
            validate_meta(artifact)
            (dest_dir / platform.skill_file).write_text(
                platform.render_skill(artifact, platform), encoding="utf-8"
            )

        logger.info("  Processed %d skill(s) -> %s/", len(skill_dirs), platform.skills_dir)
        return len(skill_dirs)

    def _copy_claude_configs(self) -> list[str]:
        source_root = self.artifacts_path / CLAUDE_CONFIG_DIR
        dest_root = self.generated_path / CLAUDE.output_dir

        copied = []
        for relative in CLAUDE_CONFIG_FILES:
            source = source_root / relative
            if not source.exists():
                logger.debug("No %s to copy", relative)
                continue
            dest = dest_root / relative
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)
            copied.append(str(relative))
            logger.info("  Copied %s", relative)
        return copied

    def _format(self) -> bool:
        args = self.config.get_format_args()
        if not args:
            logger.info("No formatter configured, skipping format")
            return False

        logger.info("Running %s", " ".join(args))
        try:
            output = self._run(*args)
        except FileNotFoundError as e:
            raise FormatError(f"Formatter not found: {args[0]}") from e
        except subprocess.CalledProcessError as e:
            logger.error("Formatter failed: %s", truncate_output(e.stderr or ""))
            raise FormatError(f"Formatter '{' '.join(args)}' failed: {e.stderr}") from e
        logger.debug("Formatter output: %s", truncate_output(output))
        return True

    def _relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.root_path))
        except ValueError:
            return str(path)

    @staticmethod
    def _recreate_dir(path: Path) -> None:
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)
