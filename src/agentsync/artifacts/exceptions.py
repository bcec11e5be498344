"""Exceptions for the artifact sync pipeline."""


class ArtifactError(Exception):
    """Base exception for artifact errors."""


class MetadataError(ArtifactError):
    """Artifact sidecar metadata is missing required fields."""


class FormatError(ArtifactError):
    """The formatter command failed on generated output."""


class DriftCheckError(ArtifactError):
    """Generated output could not be compared against git."""
