"""Booking state machine."""

from reservations.core.exceptions import InvalidStateTransition

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")

BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def booking_sources_for(target: str) -> tuple[str, ...]:
    return tuple(state for state in BOOKING_STATUSES if target in BOOKING_TRANSITIONS[state])


def assert_booking_transition(current: str, target: str) -> None:
    allowed = BOOKING_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateTransition("booking", current, target)
