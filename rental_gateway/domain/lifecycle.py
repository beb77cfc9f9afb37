"""Booking state machine and actor permissions"""

import uuid
from typing import Dict, FrozenSet

from rental_gateway.domain.exceptions import AuthorizationError, InvalidStateError
from rental_gateway.domain.models import Actor, BookingStatus, PropertyStatus

TERMINAL_STATES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.TERMINATED}
)

# Statuses that hold a property's calendar
OPEN_STATES: FrozenSet[BookingStatus] = frozenset({BookingStatus.PENDING_APPROVAL, BookingStatus.ACTIVE})

TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING_APPROVAL: frozenset(
        {BookingStatus.ACTIVE, BookingStatus.REJECTED, BookingStatus.CANCELLED}
    ),
    BookingStatus.ACTIVE: frozenset({BookingStatus.CANCELLED, BookingStatus.TERMINATED}),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.TERMINATED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise InvalidStateError unless ``current -> target`` is a forward edge of the state machine"""
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Booking cannot move from {current.value} to {target.value}",
            current_state=current.value,
        )


def ensure_status(current: BookingStatus, expected: BookingStatus) -> None:
    if current != expected:
        raise InvalidStateError(
            f"Booking is {current.value}, expected {expected.value}",
            current_state=current.value,
        )


def can_manage(actor: Actor, owner_id: uuid.UUID) -> bool:
    """Owner of the property or an administrator"""
    return actor.is_admin or actor.user_id == owner_id


def can_participate(actor: Actor, tenant_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
    """Either party to the tenancy or an administrator"""
    return actor.is_admin or actor.user_id in (tenant_id, owner_id)


def ensure_can_manage(actor: Actor, owner_id: uuid.UUID) -> None:
    if not can_manage(actor, owner_id):
        raise AuthorizationError("Not authorized to manage this booking", {"actor_id": str(actor.user_id)})


def ensure_can_participate(actor: Actor, tenant_id: uuid.UUID, owner_id: uuid.UUID) -> None:
    if not can_participate(actor, tenant_id, owner_id):
        raise AuthorizationError("Not authorized to act on this booking", {"actor_id": str(actor.user_id)})


def is_rentable(status: PropertyStatus) -> bool:
    return status == PropertyStatus.FOR_RENT
