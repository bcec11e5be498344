"""Poll decision engine - decides the next action of the CI monitor loop.

Each call takes one CI status snapshot plus the caller-held ``PollContext`` and
returns exactly one ``ActionResult``. The engine keeps no state between calls;
counters travel through the context and come back in the result.

Decisions are made by ordered rule tables: the first rule whose predicate
matches produces the result. Normal mode runs the polling-timeout rule, then
updates the no-progress counter, then walks ``NORMAL_MODE_RULES``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from agentsync.monitor.exceptions import MonitorError, SnapshotError
from agentsync.monitor.models import (
    NOT_AVAILABLE,
    Action,
    ActionResult,
    CipeStatus,
    CiStatusSnapshot,
    DoneStatus,
    FailureClassification,
    FixStatus,
    PollContext,
    SkipReason,
    TaskCategorization,
    TaskCategory,
    UserAction,
    Verbosity,
)

logger = logging.getLogger(__name__)

BACKOFF_DELAYS = (60, 90, 120)
WAIT_DELAY = 30
NEW_CIPE_DELAY = 60
CIRCUIT_BREAKER_LIMIT = 3
ENV_RERUN_CAP = 2
LIGHT_FIELDS = "light"

_RUNNING = (FixStatus.NOT_STARTED, FixStatus.IN_PROGRESS)


def backoff(count: int) -> int:
    """Poll delay in seconds for the given poll count, capped at 120."""
    return BACKOFF_DELAYS[min(count, len(BACKOFF_DELAYS) - 1)]


def estimate_elapsed(poll_count: int) -> int:
    """Estimate seconds spent polling from the poll count alone.

    The engine has no clock, so elapsed time is approximated with the backoff
    delay at half the poll count. Callers that sleep for other durations will
    drift from this estimate.
    """
    if poll_count == 0:
        return 0
    return poll_count * backoff(poll_count // 2)


def is_e2e_task(task_id: str) -> bool:
    """Whether a ``project:target[:config]`` task id names an e2e target."""
    parts = task_id.split(":")
    return len(parts) >= 2 and "e2e" in parts[1]


def categorize_tasks(
    failed_task_ids: Iterable[str], verified_task_ids: Iterable[str]
) -> TaskCategorization:
    """Categorize the failed tasks a fix did not verify.

    Args:
        failed_task_ids: Task ids that failed in CI.
        verified_task_ids: Task ids the fix verification confirmed.

    Returns:
        ``all_verified`` when nothing is left, ``e2e_only`` when only e2e tasks
        are left, otherwise ``needs_local_verify`` with the non-e2e tasks.
    """
    verified = set(verified_task_ids)
    unverified = [task for task in failed_task_ids if task not in verified]
    if not unverified:
        return TaskCategorization(TaskCategory.ALL_VERIFIED)

    verifiable = [task for task in unverified if not is_e2e_task(task)]
    if not verifiable:
        return TaskCategorization(TaskCategory.E2E_ONLY)
    return TaskCategorization(TaskCategory.NEEDS_LOCAL_VERIFY, verifiable)


def _show(status: object | None) -> str:
    return NOT_AVAILABLE if status is None else str(status)


def format_message(text: str, snapshot: CiStatusSnapshot, context: PollContext) -> str | None:
    """Format a status message for the requested verbosity.

    Minimal verbosity only reports state transitions and returns None when the
    status key matches the previous call's.
    """
    if context.verbosity == Verbosity.MINIMAL:
        if snapshot.status_key == (context.prev_status or ""):
            return None
        return text

    poll_number = context.poll_count + 1
    if context.verbosity == Verbosity.VERBOSE:
        header = (
            f"Poll #{poll_number} | CI: {_show(snapshot.cipe_status_raw)} | "
            f"Self-healing: {_show(snapshot.self_healing_status)} | "
            f"Verification: {_show(snapshot.verification_status)}"
        )
        return f"{header}\n{text}"
    return f"Poll #{poll_number} | {text}"


@dataclass(frozen=True)
class Evaluation:
    """Inputs of one decision, plus the counter as updated so far."""

    snapshot: CiStatusSnapshot
    context: PollContext
    no_progress_count: int

    def message(self, text: str) -> str | None:
        return format_message(text, self.snapshot, self.context)

    def poll(self, text: str) -> ActionResult:
        return ActionResult(
            action=Action.POLL,
            delay=backoff(self.context.poll_count),
            message=self.message(text),
            fields=LIGHT_FIELDS,
            no_progress_count=self.no_progress_count,
            env_rerun_count=self.context.env_rerun_count,
        )

    def done(
        self,
        status: DoneStatus,
        text: str,
        *,
        reset_progress: bool = False,
        verifiable_task_ids: list[str] | None = None,
    ) -> ActionResult:
        return ActionResult(
            action=Action.DONE,
            status=status,
            message=self.message(text),
            verifiable_task_ids=verifiable_task_ids,
            no_progress_count=0 if reset_progress else self.no_progress_count,
            env_rerun_count=self.context.env_rerun_count,
        )


@dataclass(frozen=True)
class Rule:
    """One row of a decision table."""

    name: str
    applies: Callable[[Evaluation], bool]
    outcome: Callable[[Evaluation], ActionResult]


def _always(ev: Evaluation) -> bool:
    return True


# Wait mode


def _is_new_cipe(ev: Evaluation) -> bool:
    snap, ctx = ev.snapshot, ev.context
    url_changed = bool(ctx.prev_cipe_url and snap.cipe_url and snap.cipe_url != ctx.prev_cipe_url)
    sha_matched = bool(ctx.expected_sha and snap.commit_sha and snap.commit_sha == ctx.expected_sha)
    return url_changed or sha_matched


def _new_cipe_detected(ev: Evaluation) -> ActionResult:
    status = _show(ev.snapshot.cipe_status_raw)
    return ActionResult(
        action=Action.POLL,
        delay=NEW_CIPE_DELAY,
        message=ev.message(f"New CI Attempt detected! CI: {status}"),
        fields=LIGHT_FIELDS,
        new_cipe_detected=True,
        no_progress_count=0,
        env_rerun_count=ev.context.env_rerun_count,
    )


def _new_cipe_timed_out(ev: Evaluation) -> bool:
    timeout = ev.context.new_cipe_timeout_seconds
    return timeout > 0 and ev.context.poll_count * WAIT_DELAY >= timeout


def _keep_waiting(ev: Evaluation) -> ActionResult:
    return ActionResult(
        action=Action.WAIT,
        delay=WAIT_DELAY,
        message=ev.message("Waiting for new CI Attempt..."),
        no_progress_count=ev.no_progress_count,
        env_rerun_count=ev.context.env_rerun_count,
    )


WAIT_MODE_RULES: tuple[Rule, ...] = (
    Rule("new_cipe_detected", _is_new_cipe, _new_cipe_detected),
    Rule(
        "no_new_cipe",
        _new_cipe_timed_out,
        lambda ev: ev.done(
            DoneStatus.NO_NEW_CIPE,
            "New CI Attempt timeout exceeded. No new CI Attempt detected.",
        ),
    ),
    Rule("waiting", _always, _keep_waiting),
)


# Normal mode


def _polling_timed_out(ev: Evaluation) -> bool:
    timeout = ev.context.timeout_seconds
    return timeout > 0 and estimate_elapsed(ev.context.poll_count) >= timeout


TIMEOUT_RULES: tuple[Rule, ...] = (
    Rule(
        "polling_timeout",
        _polling_timed_out,
        lambda ev: ev.done(DoneStatus.POLLING_TIMEOUT, "Polling timeout exceeded."),
    ),
)


def _next_no_progress_count(snapshot: CiStatusSnapshot, context: PollContext) -> int:
    """Reset the counter when CI status changed since the last call, else count up.

    Raw status strings are compared so that two statuses outside ``CipeStatus``
    still count as a change.
    """
    previous = context.prev_cipe_status
    if previous and snapshot.cipe_status_raw != previous:
        return 0
    return context.no_progress_count + 1


def _cipe_is(*statuses: CipeStatus) -> Callable[[Evaluation], bool]:
    return lambda ev: ev.snapshot.cipe_status in statuses


def _no_tasks_recorded(ev: Evaluation) -> bool:
    snap = ev.snapshot
    return (
        snap.cipe_status == CipeStatus.FAILED
        and not snap.failed_task_ids
        and snap.self_healing_status is None
    )


def _environment_issue(ev: Evaluation) -> ActionResult:
    if ev.context.env_rerun_count >= ENV_RERUN_CAP:
        return ev.done(
            DoneStatus.ENVIRONMENT_RERUN_CAP,
            f"Environment rerun cap ({ENV_RERUN_CAP}) exceeded. Bailing.",
        )
    return ev.done(DoneStatus.ENVIRONMENT_ISSUE, "CI: FAILED | Classification: ENVIRONMENT_STATE")


def _self_healing_running(ev: Evaluation) -> bool:
    snap = ev.snapshot
    return snap.self_healing_status in _RUNNING and snap.self_healing_skipped_reason is None


def _auto_apply_verifying(ev: Evaluation) -> bool:
    snap = ev.snapshot
    return snap.could_auto_apply_tasks is True and snap.verification_status in _RUNNING


def _auto_apply_verified(ev: Evaluation) -> bool:
    snap = ev.snapshot
    return snap.could_auto_apply_tasks is True and snap.verification_status == FixStatus.COMPLETED


def _fix_needs_review(ev: Evaluation) -> bool:
    snap = ev.snapshot
    if snap.self_healing_status != FixStatus.COMPLETED:
        return False
    if snap.verification_status in (FixStatus.FAILED, FixStatus.NOT_EXECUTABLE):
        return True
    return snap.could_auto_apply_tasks is not True and snap.verification_status is None


def _fix_disposition(ev: Evaluation) -> ActionResult:
    snap = ev.snapshot
    categorization = categorize_tasks(snap.failed_task_ids, snap.verified_task_ids)
    if categorization.category in (TaskCategory.ALL_VERIFIED, TaskCategory.E2E_ONLY):
        return ev.done(
            DoneStatus.FIX_APPLY_READY,
            "Fix available and verified. Ready to apply.",
            reset_progress=True,
        )
    verifiable = categorization.verifiable_task_ids
    return ev.done(
        DoneStatus.FIX_NEEDS_LOCAL_VERIFY,
        f"Fix available. {len(verifiable)} task(s) need local verification.",
        reset_progress=True,
        verifiable_task_ids=verifiable,
    )


def _no_fix_possible(ev: Evaluation) -> bool:
    snap = ev.snapshot
    return snap.cipe_status == CipeStatus.FAILED and (
        snap.self_healing_enabled is False or snap.self_healing_status == FixStatus.NOT_EXECUTABLE
    )


def _fallback(ev: Evaluation) -> ActionResult:
    snap = ev.snapshot
    return ev.poll(
        f"CI: {_show(snap.cipe_status_raw)} | Self-healing: {_show(snap.self_healing_status)} | "
        f"Verification: {_show(snap.verification_status)}"
    )


NORMAL_MODE_RULES: tuple[Rule, ...] = (
    Rule(
        "circuit_breaker",
        lambda ev: ev.no_progress_count >= CIRCUIT_BREAKER_LIMIT,
        lambda ev: ev.done(
            DoneStatus.CIRCUIT_BREAKER,
            f"No progress after {CIRCUIT_BREAKER_LIMIT} consecutive polls. Stopping.",
        ),
    ),
    Rule(
        "ci_success",
        _cipe_is(CipeStatus.SUCCEEDED),
        lambda ev: ev.done(DoneStatus.CI_SUCCESS, "CI passed successfully!", reset_progress=True),
    ),
    Rule(
        "cipe_canceled",
        _cipe_is(CipeStatus.CANCELED),
        lambda ev: ev.done(DoneStatus.CIPE_CANCELED, "CI Attempt was canceled."),
    ),
    Rule(
        "cipe_timed_out",
        _cipe_is(CipeStatus.TIMED_OUT),
        lambda ev: ev.done(DoneStatus.CIPE_TIMED_OUT, "CI Attempt timed out."),
    ),
    Rule(
        "cipe_no_tasks",
        _no_tasks_recorded,
        lambda ev: ev.done(DoneStatus.CIPE_NO_TASKS, "CI failed but no Nx tasks were recorded."),
    ),
    Rule(
        "environment_issue",
        lambda ev: ev.snapshot.failure_classification == FailureClassification.ENVIRONMENT_STATE,
        _environment_issue,
    ),
    Rule(
        "self_healing_throttled",
        lambda ev: ev.snapshot.self_healing_skipped_reason == SkipReason.THROTTLED,
        lambda ev: ev.done(
            DoneStatus.SELF_HEALING_THROTTLED,
            "Self-healing throttled: too many unapplied fixes.",
        ),
    ),
    Rule(
        "ci_running",
        _cipe_is(CipeStatus.IN_PROGRESS, CipeStatus.NOT_STARTED),
        lambda ev: ev.poll(f"CI: {_show(ev.snapshot.cipe_status_raw)}"),
    ),
    Rule(
        "self_healing_running",
        _self_healing_running,
        lambda ev: ev.poll(
            f"CI: {_show(ev.snapshot.cipe_status_raw)} | "
            f"Self-healing: {_show(ev.snapshot.self_healing_status)}"
        ),
    ),
    Rule(
        "flaky_task_rerun",
        lambda ev: ev.snapshot.failure_classification == FailureClassification.FLAKY_TASK,
        lambda ev: ev.poll("CI: FAILED | Classification: FLAKY_TASK (auto-rerun in progress)"),
    ),
    Rule(
        "fix_auto_applied",
        lambda ev: ev.snapshot.user_action == UserAction.APPLIED_AUTOMATICALLY,
        lambda ev: ev.poll("CI: FAILED | Fix auto-applied, new CI Attempt spawning"),
    ),
    Rule(
        "auto_apply_verifying",
        _auto_apply_verifying,
        lambda ev: ev.poll(
            "CI: FAILED | Self-healing: COMPLETED | "
            f"Verification: {_show(ev.snapshot.verification_status)}"
        ),
    ),
    Rule(
        "fix_auto_applying",
        _auto_apply_verified,
        lambda ev: ev.done(
            DoneStatus.FIX_AUTO_APPLYING,
            "Fix verified! Auto-applying...",
            reset_progress=True,
        ),
    ),
    Rule(
        "fix_needs_review",
        _fix_needs_review,
        lambda ev: ev.done(
            DoneStatus.FIX_NEEDS_REVIEW,
            "Fix available but needs review. "
            f"Verification: {_show(ev.snapshot.verification_status)}",
            reset_progress=True,
        ),
    ),
    Rule(
        "fix_ready",
        lambda ev: ev.snapshot.self_healing_status == FixStatus.COMPLETED,
        _fix_disposition,
    ),
    Rule(
        "fix_failed",
        lambda ev: ev.snapshot.self_healing_status == FixStatus.FAILED,
        lambda ev: ev.done(DoneStatus.FIX_FAILED, "Self-healing failed to generate a fix."),
    ),
    Rule(
        "no_fix",
        _no_fix_possible,
        lambda ev: ev.done(DoneStatus.NO_FIX, "CI failed, no fix available."),
    ),
    Rule("fallback", _always, _fallback),
)


def _evaluate(rules: Iterable[Rule], evaluation: Evaluation) -> ActionResult | None:
    for rule in rules:
        if rule.applies(evaluation):
            logger.debug("Decision rule matched: %s", rule.name)
            return rule.outcome(evaluation)
    return None


def _coerce_snapshot(snapshot: CiStatusSnapshot | Mapping[str, Any] | str) -> CiStatusSnapshot:
    if isinstance(snapshot, CiStatusSnapshot):
        return snapshot
    if isinstance(snapshot, str):
        return CiStatusSnapshot.from_json(snapshot)
    return CiStatusSnapshot.from_dict(snapshot)


def decide(
    snapshot: CiStatusSnapshot | Mapping[str, Any] | str,
    context: PollContext,
) -> ActionResult:
    """Decide the next action of the CI monitor loop.

    Args:
        snapshot: CI status as a snapshot, a decoded mapping, or raw JSON text.
        context: Polling state carried over from the previous call.

    Returns:
        The single next action, with counters for the caller to persist.
        Malformed CI information yields ``done/error`` instead of raising.
    """
    try:
        parsed = _coerce_snapshot(snapshot)
    except SnapshotError as e:
        logger.warning("Rejecting CI information: %s", e)
        return ActionResult(
            action=Action.DONE,
            status=DoneStatus.ERROR,
            message="Failed to parse ci_information JSON",
            no_progress_count=context.no_progress_count + 1,
            env_rerun_count=context.env_rerun_count,
        )

    evaluation = Evaluation(parsed, context, context.no_progress_count)

    if context.wait_mode:
        rules = WAIT_MODE_RULES
    else:
        timed_out = _evaluate(TIMEOUT_RULES, evaluation)
        if timed_out is not None:
            return timed_out
        evaluation = replace(
            evaluation, no_progress_count=_next_no_progress_count(parsed, context)
        )
        rules = NORMAL_MODE_RULES

    result = _evaluate(rules, evaluation)
    if result is None:
        # Both tables end with a catch-all rule.
        raise MonitorError("No decision rule matched")
    logger.info(
        "Poll #%d decided %s%s",
        context.poll_count + 1,
        result.action.value,
        f"/{result.status.value}" if result.status else "",
    )
    return result
