"""Unit tests for the agentsync CLI."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from agentsync.artifacts import ArtifactSyncer
from agentsync.cli import main
from agentsync.release import PluginValidationError


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a project with one command and a plugin manifest."""
    (tmp_path / "agentsync.yaml").write_text(
        """
name: test-project
platforms: [gemini]
format_command: null
plugin:
  dir: plugin
  manifest: plugin.json
  marketplace: marketplace.json
"""
    )
    commands = tmp_path / "artifacts" / "commands"
    commands.mkdir(parents=True)
    (commands / "fix-ci.md").write_text("Fix $ARGUMENTS\n")
    (commands / "fix-ci.md.meta.json").write_text('{"description": "Fix CI"}')
    (tmp_path / "plugin.json").write_text('{"version": "1.0.0"}')
    (tmp_path / "marketplace.json").write_text('{"plugins": [{"version": "1.0.0"}]}')
    return tmp_path


def _last_json(output: str) -> dict[str, Any]:
    return json.loads(output.strip().splitlines()[-1])


@pytest.mark.unit
class TestSyncCommand:
    """Tests for sync and drift check."""

    def test_sync(self, runner: CliRunner, project: Path) -> None:
        result = runner.invoke(main, ["sync", "-c", str(project / "agentsync.yaml")])

        assert result.exit_code == 0
        assert "[gemini]" in result.output
        assert "Sync complete!" in result.output
        assert (project / "generated" / ".gemini" / "commands" / "fix-ci.toml").exists()

    def test_check_in_sync(self, runner: CliRunner, project: Path) -> None:
        with patch.object(ArtifactSyncer, "_run", return_value=""):
            result = runner.invoke(
                main, ["sync", "--check", "-c", str(project / "agentsync.yaml")]
            )

        assert result.exit_code == 0
        assert "up to date" in result.output

    def test_check_no_format(self, runner: CliRunner, project: Path) -> None:
        """--no-format also applies to the drift check."""
        config_path = project / "agentsync.yaml"
        config = config_path.read_text().replace("format_command: null", "format_command: fmt")
        config_path.write_text(config)

        with patch.object(ArtifactSyncer, "_run", return_value="") as mock_run:
            result = runner.invoke(main, ["sync", "--check", "--no-format", "-c", str(config_path)])

        assert result.exit_code == 0
        mock_run.assert_called_once_with("git", "diff", "--name-only", "--", "generated")

    def test_check_drift_exits_nonzero(self, runner: CliRunner, project: Path) -> None:
        outputs = ["generated/.gemini/commands/fix-ci.toml", "diff --git a b"]
        with patch.object(ArtifactSyncer, "_run", side_effect=outputs):
            result = runner.invoke(
                main, ["sync", "--check", "-c", str(project / "agentsync.yaml")]
            )

        assert result.exit_code == 1
        assert "out of sync" in result.output
        assert "generated/.gemini/commands/fix-ci.toml" in result.output

    def test_metadata_error(self, runner: CliRunner, project: Path) -> None:
        (project / "artifacts" / "commands" / "fix-ci.md.meta.json").write_text("{}")

        result = runner.invoke(main, ["sync", "-c", str(project / "agentsync.yaml")])

        assert result.exit_code == 1
        assert "Artifact error: Missing required fields" in result.output

    def test_config_error(self, runner: CliRunner, tmp_path: Path) -> None:
        config_path = tmp_path / "agentsync.yaml"
        config_path.write_text("platforms: [claude]\n")

        result = runner.invoke(main, ["sync", "-c", str(config_path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


@pytest.mark.unit
class TestReleaseCommands:
    """Tests for build-plugin, bump-version and validate-cursor."""

    def test_build_plugin(self, runner: CliRunner, project: Path) -> None:
        result = runner.invoke(main, ["build-plugin", "-c", str(project / "agentsync.yaml")])

        assert result.exit_code == 0
        assert "Copied commands/" in result.output
        assert (project / "plugin" / "commands" / "fix-ci.md").exists()

    def test_bump_version(self, runner: CliRunner, project: Path) -> None:
        result = runner.invoke(
            main, ["bump-version", "--version", "1.2.0", "-c", str(project / "agentsync.yaml")]
        )

        assert result.exit_code == 0
        assert json.loads((project / "plugin.json").read_text())["version"] == "1.2.0"
        assert "Version bumped to 1.2.0" in result.output

    def test_bump_version_invalid(self, runner: CliRunner, project: Path) -> None:
        result = runner.invoke(
            main, ["bump-version", "--version", "latest", "-c", str(project / "agentsync.yaml")]
        )

        assert result.exit_code == 1
        assert "Version error: Invalid semver version: latest" in result.output

    def test_validate_cursor(self, runner: CliRunner, project: Path) -> None:
        validator = MagicMock()
        with patch("agentsync.cli.PluginValidator", return_value=validator):
            result = runner.invoke(main, ["validate-cursor", "-c", str(project / "agentsync.yaml")])

        assert result.exit_code == 0
        validator.validate.assert_called_once()
        validator.close.assert_called_once()

    def test_validate_cursor_failure(self, runner: CliRunner, project: Path) -> None:
        validator = MagicMock()
        validator.validate.side_effect = PluginValidationError("Plugin validation failed")
        with patch("agentsync.cli.PluginValidator", return_value=validator):
            result = runner.invoke(main, ["validate-cursor", "-c", str(project / "agentsync.yaml")])

        assert result.exit_code == 1
        assert "Validation error" in result.output
        validator.close.assert_called_once()


@pytest.mark.unit
class TestCiCommands:
    """Tests for the ci subcommands."""

    def test_poll_decide(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main, ["ci", "poll-decide", '{"cipeStatus": "IN_PROGRESS"}', "1", "medium"]
        )

        assert result.exit_code == 0
        assert _last_json(result.output) == {
            "action": "poll",
            "delay": 90,
            "message": "Poll #2 | CI: IN_PROGRESS",
            "fields": "light",
            "noProgressCount": 1,
            "envRerunCount": 0,
        }

    def test_poll_decide_lenient_arguments(self, runner: CliRunner) -> None:
        """A bad poll count reads as 0 and an unknown verbosity as medium."""
        result = runner.invoke(
            main, ["ci", "poll-decide", '{"cipeStatus": "IN_PROGRESS"}', "abc", "MEDIUM"]
        )

        assert result.exit_code == 0
        data = _last_json(result.output)
        assert data["delay"] == 60
        assert data["message"] == "Poll #1 | CI: IN_PROGRESS"

    def test_poll_decide_wait_mode(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main,
            [
                "ci",
                "poll-decide",
                '{"cipeUrl": "B", "cipeStatus": "NOT_STARTED"}',
                "3",
                "--wait-mode",
                "--prev-cipe-url",
                "A",
                "--no-progress-count",
                "2",
            ],
        )

        data = _last_json(result.output)
        assert data["action"] == "poll"
        assert data["newCipeDetected"] is True
        assert data["noProgressCount"] == 0

    def test_poll_decide_invalid_json(self, runner: CliRunner) -> None:
        """Malformed input is a done/error result, not a crash."""
        result = runner.invoke(main, ["ci", "poll-decide", "not json", "0"])

        assert result.exit_code == 0
        data = _last_json(result.output)
        assert data["action"] == "done"
        assert data["status"] == "error"
        assert data["noProgressCount"] == 1

    def test_gate(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main, ["ci", "gate", "--gate-type", "env-rerun", "--env-rerun-count", "1"]
        )

        assert result.exit_code == 0
        assert _last_json(result.output) == {
            "allowed": True,
            "envRerunCount": 2,
            "message": None,
        }

    def test_gate_unknown(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["ci", "gate", "--gate-type", "deploy"])

        assert result.exit_code == 1
        assert _last_json(result.output)["allowed"] is False

    def test_post_action(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main,
            ["ci", "post-action", "--action", "local-fix-push", "--commit-sha", "abc"],
        )

        assert result.exit_code == 0
        assert _last_json(result.output) == {
            "waitMode": True,
            "pollCount": 0,
            "lastCipeUrl": None,
            "expectedCommitSha": "abc",
            "agentTriggered": True,
        }

    def test_post_action_unknown(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["ci", "post-action", "--action", "deploy"])

        assert result.exit_code == 1
        assert _last_json(result.output) == {"error": "Unknown action: deploy"}

    def test_cycle_check(self, runner: CliRunner) -> None:
        result = runner.invoke(
            main,
            [
                "ci",
                "cycle-check",
                "--status",
                "environment_issue",
                "--agent-triggered",
                "--cycle-count",
                "8",
                "--env-rerun-count",
                "1",
            ],
        )

        data = _last_json(result.output)
        assert data["cycleCount"] == 9
        assert data["envRerunCount"] == 1
        assert data["approachingLimit"] is True
        assert data["agentTriggered"] is False
