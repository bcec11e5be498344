"""Data models for the CI monitor."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Self

from agentsync.monitor.exceptions import SnapshotError

NOT_AVAILABLE = "N/A"


class _ParsedEnum(StrEnum):
    """String enum that maps unrecognised values to ``UNKNOWN``."""

    @classmethod
    def _missing_(cls, value: object) -> _ParsedEnum | None:
        if isinstance(value, str):
            return cls("UNKNOWN")
        return None

    @classmethod
    def parse(cls, value: object) -> Self | None:
        """Parse an optional raw value, keeping absence (None or "") as None."""
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise SnapshotError(f"Expected string for {cls.__name__}, got {type(value).__name__}")
        return cls(value)


class CipeStatus(_ParsedEnum):
    """Overall CI pipeline execution status."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELED = "CANCELED"
    TIMED_OUT = "TIMED_OUT"
    UNKNOWN = "UNKNOWN"


class FixStatus(_ParsedEnum):
    """Status of self-healing fix generation or fix verification."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    NOT_EXECUTABLE = "NOT_EXECUTABLE"
    UNKNOWN = "UNKNOWN"


class SkipReason(_ParsedEnum):
    """Reason self-healing was skipped."""

    THROTTLED = "THROTTLED"
    UNKNOWN = "UNKNOWN"


class FailureClassification(_ParsedEnum):
    """Classification of a CI failure."""

    ENVIRONMENT_STATE = "ENVIRONMENT_STATE"
    FLAKY_TASK = "FLAKY_TASK"
    UNKNOWN = "UNKNOWN"


class UserAction(_ParsedEnum):
    """Action taken on a generated fix."""

    APPLIED_AUTOMATICALLY = "APPLIED_AUTOMATICALLY"
    UNKNOWN = "UNKNOWN"


class Verbosity(StrEnum):
    """Message verbosity level."""

    MINIMAL = "minimal"
    MEDIUM = "medium"
    VERBOSE = "verbose"


class Action(StrEnum):
    """Next action for the polling loop."""

    POLL = "poll"
    WAIT = "wait"
    DONE = "done"


class DoneStatus(StrEnum):
    """Terminal reason attached to a ``done`` action."""

    ERROR = "error"
    NO_NEW_CIPE = "no_new_cipe"
    POLLING_TIMEOUT = "polling_timeout"
    CIRCUIT_BREAKER = "circuit_breaker"
    CI_SUCCESS = "ci_success"
    CIPE_CANCELED = "cipe_canceled"
    CIPE_TIMED_OUT = "cipe_timed_out"
    CIPE_NO_TASKS = "cipe_no_tasks"
    ENVIRONMENT_RERUN_CAP = "environment_rerun_cap"
    ENVIRONMENT_ISSUE = "environment_issue"
    SELF_HEALING_THROTTLED = "self_healing_throttled"
    FIX_AUTO_APPLYING = "fix_auto_applying"
    FIX_NEEDS_REVIEW = "fix_needs_review"
    FIX_APPLY_READY = "fix_apply_ready"
    FIX_NEEDS_LOCAL_VERIFY = "fix_needs_local_verify"
    FIX_FAILED = "fix_failed"
    NO_FIX = "no_fix"


class TaskCategory(StrEnum):
    """Verification category of a fix's failed tasks."""

    ALL_VERIFIED = "all_verified"
    E2E_ONLY = "e2e_only"
    NEEDS_LOCAL_VERIFY = "needs_local_verify"


def _optional_bool(data: Mapping[str, Any], key: str) -> bool | None:
    value = data.get(key)
    if value is None or isinstance(value, bool):
        return value
    raise SnapshotError(f"Field '{key}' must be a boolean, got {type(value).__name__}")


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    raise SnapshotError(f"Field '{key}' must be a string, got {type(value).__name__}")


def _task_ids(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise SnapshotError(f"Field '{key}' must be a list of task ids")
    return list(value)


@dataclass(frozen=True)
class CiStatusSnapshot:
    """Snapshot of a CI pipeline execution as reported by CI.

    Attributes:
        cipe_status: Overall pipeline status.
        self_healing_status: Status of fix generation, if any.
        self_healing_enabled: Whether self-healing is enabled for the run.
        self_healing_skipped_reason: Why self-healing was skipped, if it was.
        verification_status: Status of fix verification, if any.
        failure_classification: How CI classified the failure.
        failed_task_ids: Failed task ids in report order.
        verified_task_ids: Task ids confirmed by fix verification.
        could_auto_apply_tasks: Whether the fix is eligible for auto-apply.
        user_action: Action taken on the fix.
        cipe_url: URL of the pipeline execution.
        commit_sha: Commit the pipeline ran against.
        cipe_status_raw: Pipeline status exactly as reported, kept so that
            statuses unknown to ``CipeStatus`` stay distinguishable.
    """

    cipe_status: CipeStatus | None = None
    self_healing_status: FixStatus | None = None
    self_healing_enabled: bool | None = None
    self_healing_skipped_reason: SkipReason | None = None
    verification_status: FixStatus | None = None
    failure_classification: FailureClassification | None = None
    failed_task_ids: list[str] = field(default_factory=list)
    verified_task_ids: frozenset[str] = field(default_factory=frozenset)
    could_auto_apply_tasks: bool | None = None
    user_action: UserAction | None = None
    cipe_url: str | None = None
    commit_sha: str | None = None
    cipe_status_raw: str | None = None

    def __post_init__(self) -> None:
        if self.cipe_status_raw is None and self.cipe_status is not None:
            object.__setattr__(self, "cipe_status_raw", self.cipe_status.value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CiStatusSnapshot:
        """Create a snapshot from the camelCase CI information mapping.

        Raises:
            SnapshotError: If the mapping does not have the expected shape.
        """
        if not isinstance(data, Mapping):
            raise SnapshotError(f"CI information must be an object, got {type(data).__name__}")

        cipe_status = CipeStatus.parse(data.get("cipeStatus"))
        return cls(
            cipe_status=cipe_status,
            cipe_status_raw=data["cipeStatus"] if cipe_status is not None else None,
            self_healing_status=FixStatus.parse(data.get("selfHealingStatus")),
            self_healing_enabled=_optional_bool(data, "selfHealingEnabled"),
            self_healing_skipped_reason=SkipReason.parse(data.get("selfHealingSkippedReason")),
            verification_status=FixStatus.parse(data.get("verificationStatus")),
            failure_classification=FailureClassification.parse(data.get("failureClassification")),
            failed_task_ids=_task_ids(data, "failedTaskIds"),
            verified_task_ids=frozenset(_task_ids(data, "verifiedTaskIds")),
            could_auto_apply_tasks=_optional_bool(data, "couldAutoApplyTasks"),
            user_action=UserAction.parse(data.get("userAction")),
            cipe_url=_optional_str(data, "cipeUrl"),
            commit_sha=_optional_str(data, "commitSha"),
        )

    @classmethod
    def from_json(cls, text: str) -> CiStatusSnapshot:
        """Create a snapshot from a JSON document.

        Raises:
            SnapshotError: If the text is not valid JSON or has the wrong shape.
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise SnapshotError(f"Failed to parse ci_information JSON: {e}") from e
        return cls.from_dict(data)

    @property
    def status_key(self) -> str:
        """Status triple used to detect state transitions between polls."""
        return "|".join(
            str(status) if status is not None else NOT_AVAILABLE
            for status in (
                self.cipe_status_raw,
                self.self_healing_status,
                self.verification_status,
            )
        )


@dataclass(frozen=True)
class PollContext:
    """Caller-held polling state, re-supplied on every call.

    Attributes:
        poll_count: Prior polls in the current waiting episode.
        verbosity: Message verbosity.
        wait_mode: Whether we are waiting for a new CI attempt to appear.
        prev_cipe_url: CI attempt URL recorded before the last action.
        expected_sha: Commit SHA expected for the next CI attempt.
        prev_status: Status key from the previous call.
        prev_cipe_status: CI status from the previous call.
        timeout_seconds: Polling timeout, 0 disables.
        new_cipe_timeout_seconds: Wait-mode timeout, 0 disables.
        env_rerun_count: Environment reruns attempted so far.
        no_progress_count: Consecutive polls without a CI status change.
    """

    poll_count: int = 0
    verbosity: Verbosity = Verbosity.MEDIUM
    wait_mode: bool = False
    prev_cipe_url: str | None = None
    expected_sha: str | None = None
    prev_status: str | None = None
    prev_cipe_status: str | None = None
    timeout_seconds: int = 0
    new_cipe_timeout_seconds: int = 0
    env_rerun_count: int = 0
    no_progress_count: int = 0


@dataclass(frozen=True)
class TaskCategorization:
    """Result of categorizing a fix's unverified tasks."""

    category: TaskCategory
    verifiable_task_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ActionResult:
    """The single decision emitted for one poll.

    Attributes:
        action: Next action for the caller.
        no_progress_count: Updated no-progress counter to persist.
        env_rerun_count: Updated environment rerun counter to persist.
        message: Status line, None when suppressed.
        status: Terminal reason, only for ``done``.
        delay: Seconds to wait before calling again, only for ``poll``/``wait``.
        fields: Hint for which status fields to fetch next.
        verifiable_task_ids: Tasks needing local verification.
        new_cipe_detected: Set when a new CI attempt was found in wait mode.
    """

    action: Action
    no_progress_count: int
    env_rerun_count: int
    message: str | None = None
    status: DoneStatus | None = None
    delay: int | None = None
    fields: str | None = None
    verifiable_task_ids: list[str] | None = None
    new_cipe_detected: bool | None = None

    def __post_init__(self) -> None:
        if self.action == Action.DONE:
            if self.status is None or self.delay is not None:
                raise ValueError("done results need a status and no delay")
        elif self.delay is None or self.status is not None:
            raise ValueError(f"{self.action.value} results need a delay and no status")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase output record, omitting absent fields."""
        result: dict[str, Any] = {"action": self.action.value}
        if self.status is not None:
            result["status"] = self.status.value
        if self.delay is not None:
            result["delay"] = self.delay
        result["message"] = self.message
        if self.fields is not None:
            result["fields"] = self.fields
        if self.verifiable_task_ids is not None:
            result["verifiableTaskIds"] = list(self.verifiable_task_ids)
        if self.new_cipe_detected is not None:
            result["newCipeDetected"] = self.new_cipe_detected
        result["noProgressCount"] = self.no_progress_count
        result["envRerunCount"] = self.env_rerun_count
        return result

    def to_json(self) -> str:
        """Serialize as a single JSON line."""
        return json.dumps(self.to_dict())


class GateKind(StrEnum):
    """Budget checked by a gate."""

    LOCAL_FIX = "local-fix"
    ENV_RERUN = "env-rerun"

    @property
    def counter_key(self) -> str:
        """Name of the counter this gate increments."""
        return "localVerifyCount" if self == GateKind.LOCAL_FIX else "envRerunCount"


class PostAction(StrEnum):
    """Action taken by the monitor that starts a new CI attempt."""

    FIX_AUTO_APPLYING = "fix-auto-applying"
    APPLY_MCP = "apply-mcp"
    ENV_RERUN = "env-rerun"
    APPLY_LOCAL_PUSH = "apply-local-push"
    REJECT_FIX_PUSH = "reject-fix-push"
    LOCAL_FIX_PUSH = "local-fix-push"
    AUTO_FIX_PUSH = "auto-fix-push"
    EMPTY_COMMIT_PUSH = "empty-commit-push"

    @property
    def tracked_by_cipe_url(self) -> bool:
        """Whether the next attempt is found by URL rather than by commit SHA."""
        return self in (PostAction.FIX_AUTO_APPLYING, PostAction.APPLY_MCP, PostAction.ENV_RERUN)


@dataclass(frozen=True)
class GateResult:
    """Outcome of a budget gate."""

    kind: GateKind
    allowed: bool
    count: int
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            self.kind.counter_key: self.count,
            "message": self.message,
        }


@dataclass(frozen=True)
class PostActionResult:
    """Wait-mode parameters to use after an action."""

    wait_mode: bool
    poll_count: int
    last_cipe_url: str | None
    expected_commit_sha: str | None
    agent_triggered: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "waitMode": self.wait_mode,
            "pollCount": self.poll_count,
            "lastCipeUrl": self.last_cipe_url,
            "expectedCommitSha": self.expected_commit_sha,
            "agentTriggered": self.agent_triggered,
        }


@dataclass(frozen=True)
class CycleCheckResult:
    """Cycle counters after handling a ``done`` status."""

    cycle_count: int
    env_rerun_count: int
    approaching_limit: bool
    message: str | None = None
    agent_triggered: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycleCount": self.cycle_count,
            "agentTriggered": self.agent_triggered,
            "envRerunCount": self.env_rerun_count,
            "approachingLimit": self.approaching_limit,
            "message": self.message,
        }
