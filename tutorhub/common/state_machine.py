"""Payment and parent-call state machines.

Both machines have a single non-terminal start state; every other state is
terminal and has no outgoing transitions.
"""

from tutorhub.common.errors import InvalidStateTransition


PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    "created": {"captured", "failed"},
    "captured": set(),
    "failed": set(),
}

PARENT_CALL_TRANSITIONS: dict[str, set[str]] = {
    "scheduled": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def is_terminal(transitions: dict[str, set[str]], state: str) -> bool:
    return state in transitions and not transitions[state]


def validate_transition(transitions: dict[str, set[str]], current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in transitions.get(current, set()):
        raise InvalidStateTransition(f"Invalid transition: {current} -> {new}", current=current, target=new)
