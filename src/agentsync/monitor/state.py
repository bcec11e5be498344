"""Counter gates and cycle bookkeeping for the CI monitor loop.

These are the companions of the poll decision engine: the caller consults a
gate before spending a local fix attempt or an environment rerun, computes
wait-mode parameters after taking an action, and runs a cycle check whenever
a new ``done`` status arrives.
"""

from __future__ import annotations

import logging

from agentsync.monitor.engine import ENV_RERUN_CAP
from agentsync.monitor.exceptions import UnknownActionError
from agentsync.monitor.models import (
    CycleCheckResult,
    DoneStatus,
    GateKind,
    GateResult,
    PostAction,
    PostActionResult,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_VERIFY_ATTEMPTS = 3
DEFAULT_MAX_CYCLES = 10
# Cycles left before the limit at which callers are warned.
APPROACHING_LIMIT_MARGIN = 2


def gate(
    kind: GateKind | str,
    count: int,
    max_attempts: int = DEFAULT_LOCAL_VERIFY_ATTEMPTS,
) -> GateResult:
    """Check whether another local fix or environment rerun is allowed.

    Args:
        kind: Which budget to check.
        count: Attempts already spent.
        max_attempts: Local fix budget; environment reruns are capped at 2.

    Returns:
        GateResult with the incremented count when allowed, unchanged otherwise.

    Raises:
        UnknownActionError: If the gate kind is not recognised.
    """
    try:
        kind = GateKind(kind)
    except ValueError as e:
        raise UnknownActionError(f"Unknown gate type: {kind}") from e

    if kind == GateKind.LOCAL_FIX:
        if count >= max_attempts:
            logger.info("Local fix budget exhausted (%d/%d)", count, max_attempts)
            return GateResult(
                kind=kind,
                allowed=False,
                count=count,
                message=f"Local fix budget exhausted ({count}/{max_attempts} attempts)",
            )
        return GateResult(kind=kind, allowed=True, count=count + 1)

    if count >= ENV_RERUN_CAP:
        logger.info("Environment rerun budget exhausted (%d)", count)
        return GateResult(
            kind=kind,
            allowed=False,
            count=count,
            message=(
                f"Environment issue persists after {count} reruns. "
                "Manual investigation needed."
            ),
        )
    return GateResult(kind=kind, allowed=True, count=count + 1)


def post_action(
    action: PostAction | str,
    cipe_url: str | None = None,
    commit_sha: str | None = None,
) -> PostActionResult:
    """Compute wait-mode parameters after the monitor took an action.

    Actions that go through CI (MCP apply, auto-apply, reruns) are tracked by
    the current CI attempt URL; local pushes are tracked by the pushed commit.

    Raises:
        UnknownActionError: If the action is not recognised.
    """
    try:
        action = PostAction(action)
    except ValueError as e:
        raise UnknownActionError(f"Unknown action: {action}") from e

    by_url = action.tracked_by_cipe_url
    return PostActionResult(
        wait_mode=True,
        poll_count=0,
        last_cipe_url=cipe_url if by_url else None,
        expected_commit_sha=None if by_url else commit_sha,
        # Self-healing applied the fix itself; the monitor did not.
        agent_triggered=action != PostAction.FIX_AUTO_APPLYING,
    )


def cycle_check(
    status: DoneStatus | str,
    agent_triggered: bool = False,
    cycle_count: int = 0,
    max_cycles: int = DEFAULT_MAX_CYCLES,
    env_rerun_count: int = 0,
) -> CycleCheckResult:
    """Update cycle counters when a new ``done`` status is handled.

    Args:
        status: The status just received from the decision engine.
        agent_triggered: Whether the previous cycle was started by the monitor.
        cycle_count: Monitor-triggered cycles so far.
        max_cycles: Cycle limit.
        env_rerun_count: Environment reruns so far.
    """
    if agent_triggered:
        cycle_count += 1

    if status != DoneStatus.ENVIRONMENT_ISSUE:
        env_rerun_count = 0

    approaching_limit = cycle_count >= max_cycles - APPROACHING_LIMIT_MARGIN
    message = None
    if approaching_limit:
        message = f"Approaching cycle limit ({cycle_count}/{max_cycles})"
        logger.warning(message)

    return CycleCheckResult(
        cycle_count=cycle_count,
        env_rerun_count=env_rerun_count,
        approaching_limit=approaching_limit,
        message=message,
    )
