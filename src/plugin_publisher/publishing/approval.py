"""Approval state machine for publish requests.

Every legal move of a publish request lives in ``transition``: button
presses (approve / deny / noci) from reviewers and build results from the
CI completion webhook. The function is pure; the service executes the
returned effects in order.

States:
    PENDING          message posted, awaiting a decision
    APPROVED         build dispatched and running
    DENIED           terminal, reviewer denied the request
    SKIPPED_CI       terminal, approved without a CI build
    BUILD_COMPLETED  terminal, CI build succeeded
"""

from dataclasses import dataclass
from enum import Enum

from .errors import InvalidTransitionError, UpstreamInconsistencyError

NO_PERMISSION = "You don't have sufficient permissions to approve this commit!"
BUILD_BUSY = (
    "There is currently another plugin being built!\n"
    "Please wait until that finishes in order to approve a build!"
)
ALREADY_BUILDING = "A build for this request is already running!"
UNKNOWN_BUTTON = "Unknown button!"
UNKNOWN_REQUEST = "Unknown plugin publish request!"
DISPATCH_FAILED = "Failed to start the build, please try again later."


class ApprovalState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    SKIPPED_CI = "skipped_ci"
    BUILD_COMPLETED = "build_completed"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {ApprovalState.DENIED, ApprovalState.SKIPPED_CI, ApprovalState.BUILD_COMPLETED}
)


class ApprovalEvent(str, Enum):
    APPROVE = "approve"
    DENY = "deny"
    NOCI = "noci"
    BUILD_SUCCEEDED = "build_succeeded"
    BUILD_FAILED = "build_failed"


BUTTON_EVENTS = frozenset({ApprovalEvent.APPROVE, ApprovalEvent.DENY, ApprovalEvent.NOCI})


class Effect(str, Enum):
    """Side effects the service performs, in the order given."""

    ACQUIRE_SLOT = "acquire_slot"
    DISPATCH_BUILD = "dispatch_build"
    PERSIST_STATUS = "persist_status"
    UPDATE_MESSAGE = "update_message"
    COMMIT_LEDGER = "commit_ledger"
    FINALIZE = "finalize"


@dataclass(frozen=True)
class Transition:
    """Outcome of applying an event to a request."""

    state: ApprovalState
    effects: tuple[Effect, ...] = ()
    notice: str | None = None
    keep_buttons: bool = False

    @property
    def refused(self) -> bool:
        """True when the event was rejected with an ephemeral notice."""
        return self.notice is not None


def event_for_conclusion(conclusion: str | None) -> ApprovalEvent:
    """Map a workflow run conclusion to a build event.

    Raises:
        UpstreamInconsistencyError: For anything but success or failure
    """
    if conclusion == "success":
        return ApprovalEvent.BUILD_SUCCEEDED
    if conclusion == "failure":
        return ApprovalEvent.BUILD_FAILED
    raise UpstreamInconsistencyError(f"Invalid workflow conclusion {conclusion}")


def transition(
    state: ApprovalState,
    event: ApprovalEvent,
    *,
    authorized: bool = True,
    slot_free: bool = True,
) -> Transition:
    """Apply ``event`` to a request in ``state``.

    Args:
        state: Current request state
        event: Button press or build result
        authorized: Whether the acting user holds an allowed role
        slot_free: Whether the global build slot is free

    Returns:
        The transition to perform; refused transitions keep the state and
        carry no effects

    Raises:
        InvalidTransitionError: If the request is already terminal
    """
    if state.terminal:
        raise InvalidTransitionError(f"Publish request already {state.value}")

    if event in BUTTON_EVENTS:
        if not authorized:
            return Transition(state, notice=NO_PERMISSION)
        if state is ApprovalState.APPROVED:
            return Transition(state, notice=ALREADY_BUILDING)

        if event is ApprovalEvent.APPROVE:
            if not slot_free:
                return Transition(state, notice=BUILD_BUSY)
            return Transition(
                ApprovalState.APPROVED,
                (Effect.ACQUIRE_SLOT, Effect.DISPATCH_BUILD, Effect.PERSIST_STATUS, Effect.UPDATE_MESSAGE),
                keep_buttons=True,
            )

        if event is ApprovalEvent.DENY:
            return Transition(ApprovalState.DENIED, (Effect.UPDATE_MESSAGE, Effect.FINALIZE))

        return Transition(
            ApprovalState.SKIPPED_CI,
            (Effect.UPDATE_MESSAGE, Effect.COMMIT_LEDGER, Effect.FINALIZE),
        )

    if event is ApprovalEvent.BUILD_FAILED:
        return Transition(
            ApprovalState.PENDING,
            (Effect.PERSIST_STATUS, Effect.UPDATE_MESSAGE),
            keep_buttons=True,
        )

    return Transition(
        ApprovalState.BUILD_COMPLETED,
        (Effect.UPDATE_MESSAGE, Effect.COMMIT_LEDGER, Effect.FINALIZE),
    )
