"""Cursor plugin validation using the upstream template's script."""

from __future__ import annotations

import subprocess
import tempfile
from pathlib import Path

import httpx

from agentsync.logging import get_logger
from agentsync.release.exceptions import PluginValidationError

logger = get_logger("release.validation")

SCRIPT_NAME = "validate-template.mjs"


class PluginValidator:
    """Fetches the Cursor plugin validation script and runs it with node.

    The script is downloaded fresh on every run into a temporary directory
    that is removed afterwards.
    """

    def __init__(
        self,
        script_url: str,
        project_root: Path,
        timeout: float = 30.0,
        node: str = "node",
    ) -> None:
        """Initialize the validator.

        Args:
            script_url: URL of the validation script.
            project_root: Directory the script validates (its working directory).
            timeout: HTTP timeout in seconds.
            node: Node executable.
        """
        self.script_url = script_url
        self.project_root = project_root
        self.timeout = timeout
        self.node = node
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, follow_redirects=True)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def fetch_script(self) -> str:
        """Download the validation script.

        Raises:
            PluginValidationError: If the request fails or is not successful.
        """
        logger.info("Fetching Cursor plugin validation script...")
        try:
            response = self.client.get(self.script_url)
        except httpx.HTTPError as e:
            raise PluginValidationError(f"Failed to fetch validation script: {e}") from e
        if not response.is_success:
            raise PluginValidationError(
                f"Failed to fetch validation script: {response.status_code}"
            )
        return response.text

    def validate(self) -> None:
        """Fetch and run the validation script against the project.

        The script's output is passed through to the terminal.

        Raises:
            PluginValidationError: If fetching fails or the script exits non-zero.
        """
        script = self.fetch_script()
        with tempfile.TemporaryDirectory(prefix="cursor-plugin-validate-") as tmpdir:
            script_path = Path(tmpdir) / SCRIPT_NAME
            script_path.write_text(script, encoding="utf-8")

            logger.info("Running validation...")
            try:
                subprocess.run(
                    [self.node, str(script_path)],
                    cwd=self.project_root,
                    check=True,
                )
            except FileNotFoundError as e:
                raise PluginValidationError(f"Node executable not found: {self.node}") from e
            except subprocess.CalledProcessError as e:
                raise PluginValidationError(
                    f"Plugin validation failed (exit code {e.returncode})"
                ) from e
        logger.info("Cursor plugin validation passed")
