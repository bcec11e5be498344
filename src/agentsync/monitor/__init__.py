"""CI monitor - Deterministic poll decisions and counter gates."""

from agentsync.monitor.engine import (
    backoff,
    categorize_tasks,
    decide,
    estimate_elapsed,
    format_message,
    is_e2e_task,
)
from agentsync.monitor.exceptions import MonitorError, SnapshotError, UnknownActionError
from agentsync.monitor.models import (
    Action,
    ActionResult,
    CipeStatus,
    CiStatusSnapshot,
    CycleCheckResult,
    DoneStatus,
    FailureClassification,
    FixStatus,
    GateKind,
    GateResult,
    PollContext,
    PostAction,
    PostActionResult,
    SkipReason,
    TaskCategorization,
    TaskCategory,
    UserAction,
    Verbosity,
)
from agentsync.monitor.state import cycle_check, gate, post_action

__all__ = [
    "Action",
    "ActionResult",
    "CiStatusSnapshot",
    "CipeStatus",
    "CycleCheckResult",
    "DoneStatus",
    "FailureClassification",
    "FixStatus",
    "GateKind",
    "GateResult",
    "MonitorError",
    "PollContext",
    "PostAction",
    "PostActionResult",
    "SkipReason",
    "SnapshotError",
    "TaskCategorization",
    "TaskCategory",
    "UnknownActionError",
    "UserAction",
    "Verbosity",
    "backoff",
    "categorize_tasks",
    "cycle_check",
    "decide",
    "estimate_elapsed",
    "format_message",
    "gate",
    "is_e2e_task",
    "post_action",
]
