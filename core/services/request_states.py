"""Transition table for room request status.

``pending`` may move to ``approved`` or ``rejected``; both are terminal.
"""
from core.exceptions import Conflict

PENDING = 'pending'
APPROVED = 'approved'
REJECTED = 'rejected'

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({APPROVED, REJECTED}),
    APPROVED: frozenset(),
    REJECTED: frozenset(),
}


class InvalidTransition(Conflict):
    default_detail = 'Request already processed'
    default_code = 'already_processed'


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(status)


def transition(current: str, target: str) -> str:
    if current not in TRANSITIONS or target not in TRANSITIONS:
        raise ValueError(f'unknown request status: {current!r} -> {target!r}')
    if target not in TRANSITIONS[current]:
        raise InvalidTransition()
    return target
