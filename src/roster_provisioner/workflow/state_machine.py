from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    """Where a target's provisioning failed, as shown in the run report."""

    REPO_CREATE = "RepoCreate"
    MEMBER_ADD = "MemberAdd"
    BRANCH_PROTECT = "BranchProtect"


class TargetState(str, Enum):
    PENDING = "pending"
    COPIED = "copied"
    READY = "ready"
    MEMBERS_ADDED = "members_added"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[TargetState, set[TargetState]] = {
    TargetState.PENDING: {TargetState.COPIED, TargetState.FAILED},
    TargetState.COPIED: {TargetState.READY, TargetState.FAILED},
    TargetState.READY: {TargetState.MEMBERS_ADDED, TargetState.FAILED},
    TargetState.MEMBERS_ADDED: {TargetState.DONE, TargetState.FAILED},
    TargetState.DONE: set(),
    TargetState.FAILED: set(),
}

# The stage a failure belongs to, keyed by the last state reached. Waiting for
# an asynchronous copy is part of repository creation.
STAGE_AFTER: dict[TargetState, Stage] = {
    TargetState.PENDING: Stage.REPO_CREATE,
    TargetState.COPIED: Stage.REPO_CREATE,
    TargetState.READY: Stage.MEMBER_ADD,
    TargetState.MEMBERS_ADDED: Stage.BRANCH_PROTECT,
}


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: TargetState, to: TargetState) -> TargetState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


def failure_stage(state: TargetState) -> Stage:
    """Return the stage that was in progress when a target left ``state`` by failing."""

    try:
        return STAGE_AFTER[state]
    except KeyError:
        raise IllegalTransitionError(f"No stage follows terminal state {state.value}") from None
