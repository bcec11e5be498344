"""Release helpers - Plugin build, version bump and plugin validation."""

from agentsync.release.exceptions import (
    PluginBuildError,
    PluginValidationError,
    ReleaseError,
    VersionError,
)
from agentsync.release.plugin import PluginBuild, build_claude_plugin
from agentsync.release.validation import PluginValidator
from agentsync.release.version import VersionBump, bump_version, is_valid_version

__all__ = [
    "PluginBuild",
    "PluginBuildError",
    "PluginValidationError",
    "PluginValidator",
    "ReleaseError",
    "VersionBump",
    "VersionError",
    "build_claude_plugin",
    "bump_version",
    "is_valid_version",
]
