"""Booking lifecycle state machine. Single source of truth for status transitions.

PENDING -> ACCEPTED | DECLINED | CANCELLED
ACCEPTED -> AWAITING_PICKUP (payment) | CANCELLED
AWAITING_PICKUP -> IN_USE | CANCELLED (admin)
IN_USE -> AWAITING_RETURN_INSPECTION
AWAITING_RETURN_INSPECTION -> COMPLETED (inspection) | IN_DISPUTE
IN_DISPUTE -> COMPLETED | AWAITING_RETURN_INSPECTION
"""
from __future__ import annotations

from dataclasses import dataclass
import enum

from lendit.errors import InvalidTransitionError, PermissionDeniedError
from lendit.models.booking import BookingStatus
from lendit.models.user import UserRole


class TransitionActor(str, enum.Enum):
    RENTER = "RENTER"
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"


@dataclass(frozen=True)
class StateTransition:
    from_status: BookingStatus
    to_status: BookingStatus
    allowed_actors: frozenset[TransitionActor]
    description: str
    requires_payment: bool = False
    requires_inspection: bool = False


@dataclass(frozen=True)
class TransitionContext:
    is_payment_complete: bool = False
    is_inspection_complete: bool = False


TERMINAL_STATES = frozenset({BookingStatus.DECLINED, BookingStatus.CANCELLED, BookingStatus.COMPLETED})

ACTIVE_STATES = frozenset({
    BookingStatus.ACCEPTED,
    BookingStatus.AWAITING_PICKUP,
    BookingStatus.IN_USE,
    BookingStatus.AWAITING_RETURN_INSPECTION,
    BookingStatus.IN_DISPUTE,
})


def _t(frm, to, actors, description, **flags) -> StateTransition:
    return StateTransition(frm, to, frozenset(actors), description, **flags)


_R, _O, _A, _S = TransitionActor.RENTER, TransitionActor.OWNER, TransitionActor.ADMIN, TransitionActor.SYSTEM
S = BookingStatus

STATE_TRANSITIONS: tuple[StateTransition, ...] = (
    _t(S.PENDING, S.ACCEPTED, {_O, _A}, "Owner accepts booking request"),
    _t(S.PENDING, S.DECLINED, {_O, _A}, "Owner declines booking request"),
    _t(S.PENDING, S.CANCELLED, {_R, _A}, "Renter cancels pending request"),
    _t(S.ACCEPTED, S.AWAITING_PICKUP, {_S, _A}, "Payment confirmed, ready for pickup", requires_payment=True),
    _t(S.ACCEPTED, S.CANCELLED, {_R, _O, _A}, "Booking cancelled before payment"),
    _t(S.AWAITING_PICKUP, S.IN_USE, {_O, _A}, "Equipment picked up, rental started"),
    _t(S.AWAITING_PICKUP, S.CANCELLED, {_A}, "Admin cancels after payment (requires refund)"),
    _t(S.IN_USE, S.AWAITING_RETURN_INSPECTION, {_O, _R, _A}, "Equipment returned, pending inspection"),
    _t(S.AWAITING_RETURN_INSPECTION, S.COMPLETED, {_O, _A}, "Inspection passed, rental completed", requires_inspection=True),
    _t(S.AWAITING_RETURN_INSPECTION, S.IN_DISPUTE, {_O, _R, _A}, "Dispute raised during inspection"),
    _t(S.IN_DISPUTE, S.COMPLETED, {_A}, "Dispute resolved, rental completed"),
    _t(S.IN_DISPUTE, S.AWAITING_RETURN_INSPECTION, {_A}, "Dispute withdrawn, back to inspection"),
)

_TRANSITIONS = {(t.from_status, t.to_status): t for t in STATE_TRANSITIONS}


def get_transition(from_status: BookingStatus, to_status: BookingStatus) -> StateTransition | None:
    return _TRANSITIONS.get((from_status, to_status))


def valid_next_states(current: BookingStatus) -> list[BookingStatus]:
    return [t.to_status for t in STATE_TRANSITIONS if t.from_status == current]


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATES


def actor_for(role: UserRole | None, *, is_owner: bool = False, is_renter: bool = False) -> TransitionActor:
    """Map a user (relative to a booking) to a transition actor. None = system."""
    if role is None:
        return TransitionActor.SYSTEM
    if role == UserRole.ADMIN:
        return TransitionActor.ADMIN
    if is_owner:
        return TransitionActor.OWNER
    if is_renter:
        return TransitionActor.RENTER
    raise PermissionDeniedError("Only the booking's renter, owner or an admin can change its status")


def validate_transition(
    from_status: BookingStatus,
    to_status: BookingStatus,
    actor: TransitionActor,
    context: TransitionContext | None = None,
) -> StateTransition:
    """Return the transition or raise InvalidTransitionError with a reason."""
    if is_terminal(from_status):
        raise InvalidTransitionError(f"Booking is in terminal state {from_status.value} and cannot be modified")
    transition = get_transition(from_status, to_status)
    if transition is None:
        allowed = ", ".join(s.value for s in valid_next_states(from_status)) or "none"
        raise InvalidTransitionError(
            f"Invalid transition: {from_status.value} -> {to_status.value}. "
            f"Allowed transitions from {from_status.value}: {allowed}"
        )
    if actor not in transition.allowed_actors:
        allowed = ", ".join(sorted(a.value for a in transition.allowed_actors))
        raise InvalidTransitionError(
            f"{actor.value} is not allowed to perform transition {from_status.value} -> {to_status.value}. Allowed: {allowed}"
        )
    ctx = context or TransitionContext()
    if transition.requires_payment and not ctx.is_payment_complete:
        raise InvalidTransitionError(f"Transition {from_status.value} -> {to_status.value} requires payment to be complete")
    if transition.requires_inspection and not ctx.is_inspection_complete:
        raise InvalidTransitionError(
            f"Transition {from_status.value} -> {to_status.value} requires inspection to be complete"
        )
    return transition
