"""Unit tests for the booking state machine and actor permissions"""

import uuid

import pytest

from rental_gateway.domain.exceptions import AuthorizationError, InvalidStateError
from rental_gateway.domain.lifecycle import (
    OPEN_STATES,
    TERMINAL_STATES,
    can_manage,
    can_participate,
    can_transition,
    ensure_can_manage,
    ensure_can_participate,
    ensure_status,
    ensure_transition,
    is_rentable,
)
from rental_gateway.domain.models import Actor, BookingStatus, PropertyStatus, Role

OWNER = uuid.uuid4()
TENANT = uuid.uuid4()


@pytest.mark.parametrize(
    "current,target",
    [
        (BookingStatus.PENDING_APPROVAL, BookingStatus.ACTIVE),
        (BookingStatus.PENDING_APPROVAL, BookingStatus.REJECTED),
        (BookingStatus.PENDING_APPROVAL, BookingStatus.CANCELLED),
        (BookingStatus.ACTIVE, BookingStatus.CANCELLED),
        (BookingStatus.ACTIVE, BookingStatus.TERMINATED),
    ],
)
def test_forward_transitions_allowed(current, target):
    assert can_transition(current, target) is True
    ensure_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (BookingStatus.ACTIVE, BookingStatus.PENDING_APPROVAL),
        (BookingStatus.ACTIVE, BookingStatus.REJECTED),
        (BookingStatus.PENDING_APPROVAL, BookingStatus.TERMINATED),
        (BookingStatus.CANCELLED, BookingStatus.CANCELLED),
    ],
)
def test_backward_and_skipping_transitions_rejected(current, target):
    with pytest.raises(InvalidStateError) as exc_info:
        ensure_transition(current, target)
    assert exc_info.value.current_state == current.value


def test_terminal_states_have_no_exits():
    for terminal in TERMINAL_STATES:
        assert not any(can_transition(terminal, target) for target in BookingStatus)


def test_open_states_hold_calendar():
    assert OPEN_STATES == {BookingStatus.PENDING_APPROVAL, BookingStatus.ACTIVE}
    assert not OPEN_STATES & TERMINAL_STATES


def test_ensure_status():
    ensure_status(BookingStatus.ACTIVE, BookingStatus.ACTIVE)
    with pytest.raises(InvalidStateError):
        ensure_status(BookingStatus.PENDING_APPROVAL, BookingStatus.ACTIVE)


def test_manage_permission_owner_or_admin():
    assert can_manage(Actor(OWNER, Role.AGENT), OWNER) is True
    assert can_manage(Actor(uuid.uuid4(), Role.ADMIN), OWNER) is True
    assert can_manage(Actor(TENANT, Role.USER), OWNER) is False

    with pytest.raises(AuthorizationError):
        ensure_can_manage(Actor(TENANT, Role.USER), OWNER)


def test_participate_permission_either_party_or_admin():
    assert can_participate(Actor(TENANT, Role.USER), TENANT, OWNER) is True
    assert can_participate(Actor(OWNER, Role.AGENT), TENANT, OWNER) is True
    assert can_participate(Actor(uuid.uuid4(), Role.ADMIN), TENANT, OWNER) is True
    assert can_participate(Actor(uuid.uuid4(), Role.AGENT), TENANT, OWNER) is False

    with pytest.raises(AuthorizationError):
        ensure_can_participate(Actor(uuid.uuid4(), Role.USER), TENANT, OWNER)


def test_only_for_rent_is_rentable():
    assert is_rentable(PropertyStatus.FOR_RENT) is True
    for status in (PropertyStatus.RENTED, PropertyStatus.FOR_SALE, PropertyStatus.SOLD, PropertyStatus.INACTIVE):
        assert is_rentable(status) is False
