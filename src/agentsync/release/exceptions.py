"""Exceptions for release helpers."""


class ReleaseError(Exception):
    """Base exception for release helper errors."""


class VersionError(ReleaseError):
    """Version is invalid or a manifest could not be updated."""


class PluginBuildError(ReleaseError):
    """Plugin folders could not be rebuilt."""


class PluginValidationError(ReleaseError):
    """The remote plugin validation script could not be fetched or failed."""
