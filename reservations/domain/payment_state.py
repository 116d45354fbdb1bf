"""Payment state machine."""

from reservations.core.exceptions import InvalidStateTransition

PAYMENT_STATUSES = ("pending", "pending_review", "completed", "failed")

PAYMENT_TRANSITIONS = {
    "pending": {"pending_review", "completed", "failed"},
    "pending_review": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}

TERMINAL_PAYMENT_STATUSES = frozenset({"completed", "failed"})


def sources_for(target: str) -> tuple[str, ...]:
    """Statuses from which ``target`` can be reached, in declaration order."""
    return tuple(state for state in PAYMENT_STATUSES if target in PAYMENT_TRANSITIONS[state])


def assert_payment_transition(current: str, target: str) -> None:
    allowed = PAYMENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateTransition("payment", current, target)
