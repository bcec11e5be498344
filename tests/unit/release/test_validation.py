"""Unit tests for the Cursor plugin validator."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from agentsync.release import PluginValidationError, PluginValidator


@pytest.fixture
def validator(tmp_path: Path) -> PluginValidator:
    """Create a validator with a mocked HTTP client."""
    validator = PluginValidator(
        script_url="https://example.test/validate.mjs", project_root=tmp_path
    )
    validator._client = MagicMock()
    return validator


def _response(status_code: int, text: str = "") -> httpx.Response:
    return httpx.Response(status_code, text=text)


@pytest.mark.unit
class TestFetchScript:
    """Tests for downloading the script."""

    def test_fetch_success(self, validator: PluginValidator) -> None:
        validator._client.get.return_value = _response(200, "console.log('ok')")

        assert validator.fetch_script() == "console.log('ok')"
        validator._client.get.assert_called_once_with("https://example.test/validate.mjs")

    def test_fetch_accepts_any_success_status(self, validator: PluginValidator) -> None:
        validator._client.get.return_value = _response(203, "script")

        assert validator.fetch_script() == "script"

    def test_fetch_bad_status(self, validator: PluginValidator) -> None:
        validator._client.get.return_value = _response(404)

        with pytest.raises(PluginValidationError, match="Failed to fetch validation script: 404"):
            validator.fetch_script()

    def test_fetch_network_error(self, validator: PluginValidator) -> None:
        validator._client.get.side_effect = httpx.ConnectError("no route")

        with pytest.raises(PluginValidationError, match="no route"):
            validator.fetch_script()

    def test_close_resets_client(self, validator: PluginValidator) -> None:
        client = validator._client

        validator.close()

        client.close.assert_called_once()
        assert validator._client is None


@pytest.mark.unit
class TestValidate:
    """Tests for running the script."""

    def test_runs_node_in_project_root(self, validator: PluginValidator, tmp_path: Path) -> None:
        validator._client.get.return_value = _response(200, "script")

        with patch("agentsync.release.validation.subprocess.run") as mock_run:
            validator.validate()

        args, kwargs = mock_run.call_args
        command = args[0]
        assert command[0] == "node"
        assert command[1].endswith("validate-template.mjs")
        assert kwargs["cwd"] == tmp_path
        assert kwargs["check"] is True
        # Temporary script is cleaned up afterwards.
        assert not Path(command[1]).exists()

    def test_validation_failure(self, validator: PluginValidator) -> None:
        validator._client.get.return_value = _response(200, "script")

        with (
            patch(
                "agentsync.release.validation.subprocess.run",
                side_effect=subprocess.CalledProcessError(2, ["node"]),
            ),
            pytest.raises(PluginValidationError, match="exit code 2"),
        ):
            validator.validate()

    def test_node_missing(self, validator: PluginValidator) -> None:
        validator._client.get.return_value = _response(200, "script")

        with (
            patch("agentsync.release.validation.subprocess.run", side_effect=FileNotFoundError()),
            pytest.raises(PluginValidationError, match="Node executable not found"),
        ):
            validator.validate()

    def test_fetch_failure_skips_node(self, validator: PluginValidator) -> None:
        validator._client.get.return_value = _response(500)

        with (
            patch("agentsync.release.validation.subprocess.run") as mock_run,
            pytest.raises(PluginValidationError),
        ):
            validator.validate()

        mock_run.assert_not_called()
