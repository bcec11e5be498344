"""Artifacts - Render authored agents, commands and skills per platform."""

from agentsync.artifacts.exceptions import (
    ArtifactError,
    DriftCheckError,
    FormatError,
    MetadataError,
)
from agentsync.artifacts.models import (
    Artifact,
    ArtifactKind,
    DriftReport,
    Platform,
    PlatformReport,
    SyncReport,
)
from agentsync.artifacts.platforms import PLATFORMS, get_platforms
from agentsync.artifacts.reader import read_artifact, validate_meta
from agentsync.artifacts.sync import ArtifactSyncer

__all__ = [
    "PLATFORMS",
    "Artifact",
    "ArtifactError",
    "ArtifactKind",
    "ArtifactSyncer",
    "DriftCheckError",
    "DriftReport",
    "FormatError",
    "MetadataError",
    "Platform",
    "PlatformReport",
    "SyncReport",
    "get_platforms",
    "read_artifact",
    "validate_meta",
]
