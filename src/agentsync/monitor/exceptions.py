"""Exceptions for the CI monitor."""


class MonitorError(Exception):
    """Base exception for CI monitor errors."""


class SnapshotError(MonitorError):
    """CI information could not be decoded into a status snapshot."""


class UnknownActionError(MonitorError):
    """A post-action or gate request named an action the monitor does not track."""
