"""Configuration loading for agentsync projects."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from agentsync.artifacts.platforms import PLATFORMS

CONFIG_FILE_NAME = "agentsync.yaml"
DEFAULT_FORMAT_COMMAND = "npx nx format --fix"
DEFAULT_VALIDATION_SCRIPT_URL = (
    "https://raw.githubusercontent.com/cursor/plugin-template/main/scripts/validate-template.mjs"
)


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


@dataclass
class PluginConfig:
    """Claude plugin locations, relative to the project root.

    - dir: plugin folder that receives copies of agents, skills and commands
    - manifest: plugin.json holding the source-of-truth version
    - marketplace: marketplace.json whose first plugin entry mirrors the version
    """

    dir: str = "nx-claude-plugin"
    manifest: str = "artifacts/claude-config/.claude-plugin/plugin.json"
    marketplace: str = ".claude-plugin/marketplace.json"


@dataclass
class ValidationConfig:
    """Remote plugin validation settings."""

    script_url: str = DEFAULT_VALIDATION_SCRIPT_URL
    timeout: float = 30.0


@dataclass
class AgentSyncConfig:
    """Project configuration.

    Paths are relative to ``root_path``, the directory holding the config file.
    A ``format_command`` of None skips formatting generated output.
    """

    name: str
    artifacts_dir: str = "artifacts"
    generated_dir: str = "generated"
    platforms: list[str] = field(default_factory=lambda: list(PLATFORMS))
    format_command: str | None = DEFAULT_FORMAT_COMMAND
    plugin: PluginConfig = field(default_factory=PluginConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    root_path: Path = field(default_factory=Path)

    @classmethod
    def from_dict(cls, data: dict[str, Any], root_path: Path) -> AgentSyncConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary from YAML.
            root_path: Root directory containing the config file.

        Returns:
            Parsed configuration object.

        Raises:
            ConfigError: If required fields are missing or values are invalid.
        """
        if not data.get("name"):
            raise ConfigError("Missing required fields: name")

        platforms = data.get("platforms", list(PLATFORMS))
        if not isinstance(platforms, list):
            raise ConfigError("'platforms' must be a list of platform names")
        unknown = [p for p in platforms if p not in PLATFORMS]
        if unknown:
            raise ConfigError(
                f"Unknown platforms: {', '.join(map(str, unknown))} "
                f"(expected one of: {', '.join(PLATFORMS)})"
            )

        plugin_data = _section(data, "plugin")
        plugin = PluginConfig(
            dir=plugin_data.get("dir", PluginConfig.dir),
            manifest=plugin_data.get("manifest", PluginConfig.manifest),
            marketplace=plugin_data.get("marketplace", PluginConfig.marketplace),
        )

        validation_data = _section(data, "validation")
        timeout = validation_data.get("timeout", ValidationConfig.timeout)
        if isinstance(timeout, bool) or not isinstance(timeout, int | float):
            raise ConfigError(f"'validation.timeout' must be a number of seconds, got {timeout!r}")
        validation = ValidationConfig(
            script_url=validation_data.get("script_url", DEFAULT_VALIDATION_SCRIPT_URL),
            timeout=float(timeout),
        )

        return cls(
            name=data["name"],
            artifacts_dir=data.get("artifacts_dir", "artifacts"),
            generated_dir=data.get("generated_dir", "generated"),
            platforms=platforms,
            format_command=data.get("format_command", DEFAULT_FORMAT_COMMAND),
            plugin=plugin,
            validation=validation,
            root_path=root_path,
        )

    def get_artifacts_path(self) -> Path:
        """Absolute path to the authored artifacts directory."""
        return self.root_path / self.artifacts_dir

    def get_generated_path(self) -> Path:
        """Absolute path to the generated output directory."""
        return self.root_path / self.generated_dir

    def get_plugin_path(self) -> Path:
        """Absolute path to the Claude plugin directory."""
        return self.root_path / self.plugin.dir

    def get_manifest_path(self) -> Path:
        """Absolute path to the plugin manifest (plugin.json)."""
        return self.root_path / self.plugin.manifest

    def get_marketplace_path(self) -> Path:
        """Absolute path to the marketplace manifest."""
        return self.root_path / self.plugin.marketplace

    def get_format_args(self) -> list[str] | None:
        """Formatter command split into arguments, or None when disabled."""
        if not self.format_command:
            return None
        return shlex.split(self.format_command)


def load_config(config_path: Path | str) -> AgentSyncConfig:
    """Load agentsync configuration from a YAML file.

    Args:
        config_path: Path to agentsync.yaml file.

    Returns:
        Parsed configuration object.

    Raises:
        ConfigError: If file doesn't exist or is invalid.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    return AgentSyncConfig.from_dict(data, config_path.parent.resolve())


def find_config(start_path: Path | str | None = None) -> Path:
    """Find agentsync.yaml by walking up directory tree.

    Args:
        start_path: Starting directory. Defaults to current directory.

    Returns:
        Path to agentsync.yaml file.

    Raises:
        ConfigError: If no config file is found.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path)

    current = start_path.resolve()

    while current != current.parent:
        config_path = current / CONFIG_FILE_NAME
        if config_path.exists():
            return config_path
        current = current.parent

    # Check root
    config_path = current / CONFIG_FILE_NAME
    if config_path.exists():
        return config_path

    raise ConfigError(f"No {CONFIG_FILE_NAME} found in {start_path} or any parent directory")
