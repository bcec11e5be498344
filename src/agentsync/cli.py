"""CLI entry point for agentsync.

Two families of commands:
- Artifact builds: sync (and drift check), build-plugin, bump-version, validate-cursor
- CI monitor: ci poll-decide / gate / post-action / cycle-check, each printing one JSON line
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from agentsync.artifacts import ArtifactError, ArtifactSyncer, SyncReport
from agentsync.config import AgentSyncConfig, ConfigError, find_config, load_config
from agentsync.logging import setup_logging
from agentsync.monitor import (
    PollContext,
    UnknownActionError,
    Verbosity,
    cycle_check,
    decide,
    gate,
    post_action,
)
from agentsync.release import (
    PluginValidator,
    ReleaseError,
    build_claude_plugin,
    bump_version,
)


def _setup_logging(verbose: bool, quiet: bool = False) -> None:
    """Configure logging based on verbosity.

    Args:
        verbose: Whether to enable debug logging.
        quiet: Only log warnings unless verbose (for commands whose stdout is JSON).
    """
    if verbose:
        level = "DEBUG"
    elif quiet:
        level = "WARNING"
    else:
        level = None
    setup_logging(level=level)


def _load(config_path: Path | None) -> AgentSyncConfig:
    if config_path is None:
        config_path = find_config()
    return load_config(config_path)


def _echo_report(report: SyncReport) -> None:
    for platform in report.platforms:
        click.echo(f"[{platform.platform}] -> {platform.output_path}")
        click.echo(
            f"  {platform.agents} agent(s), {platform.commands} command(s), "
            f"{platform.skills} skill(s)"
        )
        for folder in platform.skipped:
            click.echo(f"  Skipped {folder}/ (source does not exist)")
    for copied in report.copied_configs:
        click.echo(f"[claude] Copied {copied}")


@click.group()
@click.version_option(package_name="agentsync")
def main() -> None:
    """agentsync - build per-platform agent artifacts and drive the CI monitor."""
    pass


@main.command()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to agentsync.yaml (auto-detected if not specified)",
)
@click.option(
    "--check",
    is_flag=True,
    help="Fail if regenerated output differs from what git has staged",
)
@click.option(
    "--no-format",
    is_flag=True,
    help="Skip the formatter command",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
def sync(config_path: Path | None, check: bool, no_format: bool, verbose: bool) -> None:
    """Regenerate every platform's output from the artifacts folder."""
    _setup_logging(verbose)

    try:
        config = _load(config_path)
        syncer = ArtifactSyncer(config)

        if not check:
            report = syncer.sync(format_output=not no_format)
            _echo_report(report)
            click.echo("\nSync complete!")
            return

        drift = syncer.check(format_output=not no_format)
        if not drift.in_sync:
            click.echo(
                f"\nError: Generated files in {config.generated_dir}/ are out of sync with source.",
                err=True,
            )
            click.echo("Please run 'agentsync sync' and stage the changes.\n", err=True)
            click.echo("Changed files:", err=True)
            for changed in drift.changed_files:
                click.echo(f"  {changed}", err=True)
            if drift.diff:
                click.echo("\nDiff:", err=True)
                click.echo(drift.diff, err=True)
            sys.exit(1)
        click.echo("\nAll generated artifacts are up to date!")

    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except ArtifactError as e:
        click.echo(f"Artifact error: {e}", err=True)
        sys.exit(1)


@main.command("build-plugin")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to agentsync.yaml (auto-detected if not specified)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
def build_plugin(config_path: Path | None, verbose: bool) -> None:
    """Copy agents, skills and commands into the Claude plugin folder."""
    _setup_logging(verbose)

    try:
        config = _load(config_path)
        build = build_claude_plugin(config.get_artifacts_path(), config.get_plugin_path())
        for folder in build.copied:
            click.echo(f"Copied {folder}/ to {config.plugin.dir}/{folder}/")
        for folder in build.skipped:
            click.echo(f"Skipped {folder}/ (source does not exist)")
        click.echo("Build complete!")

    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except ReleaseError as e:
        click.echo(f"Build error: {e}", err=True)
        sys.exit(1)


@main.command("bump-version")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to agentsync.yaml (auto-detected if not specified)",
)
@click.option(
    "--version",
    "version",
    required=True,
    help="New semver version (e.g. 1.2.0 or 1.2.0-beta.1)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
def bump_version_command(config_path: Path | None, version: str, verbose: bool) -> None:
    """Set the plugin version in plugin.json and marketplace.json."""
    _setup_logging(verbose)

    try:
        config = _load(config_path)
        bump = bump_version(version, config.get_manifest_path(), config.get_marketplace_path())
        for path in bump.updated:
            click.echo(f"Updated {path} -> {bump.version}")
        click.echo(f"\nVersion bumped to {bump.version}")

    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except ReleaseError as e:
        click.echo(f"Version error: {e}", err=True)
        sys.exit(1)


@main.command("validate-cursor")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to agentsync.yaml (auto-detected if not specified)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
def validate_cursor(config_path: Path | None, verbose: bool) -> None:
    """Run the Cursor plugin template's validation script against this project."""
    _setup_logging(verbose)

    validator = None
    try:
        config = _load(config_path)
        validator = PluginValidator(
            script_url=config.validation.script_url,
            project_root=config.root_path,
            timeout=config.validation.timeout,
        )
        validator.validate()
        click.echo("Cursor plugin validation passed")

    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    except ReleaseError as e:
        click.echo(f"Validation error: {e}", err=True)
        sys.exit(1)
    finally:
        if validator is not None:
            validator.close()


@main.group()
def ci() -> None:
    """CI monitor decisions and counter gates (JSON on stdout)."""
    pass


def _parse_poll_count(value: str) -> int:
    try:
        return max(int(value), 0)
    except ValueError:
        return 0


def _parse_verbosity(value: str) -> Verbosity:
    try:
        return Verbosity(value)
    except ValueError:
        return Verbosity.MEDIUM


@ci.command("poll-decide")
@click.argument("ci_info_json")
@click.argument("poll_count", default="0")
@click.argument("verbosity", default=Verbosity.MEDIUM.value)
@click.option("--wait-mode", is_flag=True, help="Wait for a new CI Attempt to appear")
@click.option("--prev-cipe-url", default=None, help="CI Attempt URL before the last action")
@click.option("--expected-sha", default=None, help="Commit SHA the next CI Attempt should have")
@click.option("--prev-status", default=None, help="Status key from the previous poll")
@click.option("--prev-cipe-status", default=None, help="CI status from the previous poll")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=int,
    default=0,
    help="Polling timeout in seconds (0 = none)",
)
@click.option(
    "--new-cipe-timeout",
    "new_cipe_timeout_seconds",
    type=int,
    default=0,
    help="Wait-mode timeout in seconds (0 = none)",
)
@click.option("--env-rerun-count", type=int, default=0)
@click.option("--no-progress-count", type=int, default=0)
@click.option("-v", "--verbose", is_flag=True, help="Log decision details to stderr")
def poll_decide(
    ci_info_json: str,
    poll_count: str,
    verbosity: str,
    wait_mode: bool,
    prev_cipe_url: str | None,
    expected_sha: str | None,
    prev_status: str | None,
    prev_cipe_status: str | None,
    timeout_seconds: int,
    new_cipe_timeout_seconds: int,
    env_rerun_count: int,
    no_progress_count: int,
    verbose: bool,
) -> None:
    """Decide the next action for CI_INFO_JSON at poll POLL_COUNT.

    A POLL_COUNT that is not an integer counts as 0 and an unknown VERBOSITY
    falls back to medium, so the command always prints one decision.
    """
    _setup_logging(verbose, quiet=True)

    context = PollContext(
        poll_count=_parse_poll_count(poll_count),
        verbosity=_parse_verbosity(verbosity),
        wait_mode=wait_mode,
        prev_cipe_url=prev_cipe_url,
        expected_sha=expected_sha,
        prev_status=prev_status,
        prev_cipe_status=prev_cipe_status,
        timeout_seconds=timeout_seconds,
        new_cipe_timeout_seconds=new_cipe_timeout_seconds,
        env_rerun_count=env_rerun_count,
        no_progress_count=no_progress_count,
    )
    click.echo(decide(ci_info_json, context).to_json())


@ci.command("gate")
@click.option("--gate-type", required=True, help="Budget to check: local-fix or env-rerun")
@click.option("--local-verify-count", type=int, default=0)
@click.option("--local-verify-attempts", type=int, default=3)
@click.option("--env-rerun-count", type=int, default=0)
def gate_command(
    gate_type: str,
    local_verify_count: int,
    local_verify_attempts: int,
    env_rerun_count: int,
) -> None:
    """Check whether a local fix or environment rerun is allowed."""
    _setup_logging(False, quiet=True)

    count = env_rerun_count if gate_type == "env-rerun" else local_verify_count
    try:
        result = gate(gate_type, count, max_attempts=local_verify_attempts)
    except UnknownActionError as e:
        click.echo(json.dumps({"allowed": False, "message": str(e)}))
        sys.exit(1)
    click.echo(json.dumps(result.to_dict()))


@ci.command("post-action")
@click.option("--action", "action", required=True, help="Action just taken (e.g. apply-mcp)")
@click.option("--cipe-url", default=None)
@click.option("--commit-sha", default=None)
def post_action_command(action: str, cipe_url: str | None, commit_sha: str | None) -> None:
    """Compute wait-mode parameters after an action."""
    _setup_logging(False, quiet=True)

    try:
        result = post_action(action, cipe_url=cipe_url, commit_sha=commit_sha)
    except UnknownActionError as e:
        click.echo(json.dumps({"error": str(e)}))
        sys.exit(1)
    click.echo(json.dumps(result.to_dict()))


@ci.command("cycle-check")
@click.option("--status", required=True, help="Status just received from poll-decide")
@click.option("--agent-triggered", is_flag=True, help="Previous cycle was started by the monitor")
@click.option("--cycle-count", type=int, default=0)
@click.option("--max-cycles", type=int, default=10)
@click.option("--env-rerun-count", type=int, default=0)
def cycle_check_command(
    status: str,
    agent_triggered: bool,
    cycle_count: int,
    max_cycles: int,
    env_rerun_count: int,
) -> None:
    """Update cycle counters when handling a new status."""
    _setup_logging(False, quiet=True)

    result = cycle_check(
        status,
        agent_triggered=agent_triggered,
        cycle_count=cycle_count,
        max_cycles=max_cycles,
        env_rerun_count=env_rerun_count,
    )
    click.echo(json.dumps(result.to_dict()))


if __name__ == "__main__":
    main()
