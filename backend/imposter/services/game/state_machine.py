"""Round status transition table.

Every status change goes through ``transition``; anything not listed in
``TRANSITIONS`` is rejected, so a round can never move backwards or leave
COMPLETE.
"""
from imposter.errors import InvalidStateTransition
from imposter.models import RoundStatus

# HINTS_COMPLETE is reserved: hint completion currently moves straight to
# BETTING or VOTING, but rounds stored in that status still resolve.
TRANSITIONS = {
    RoundStatus.IN_PROGRESS: frozenset({
        RoundStatus.HINTS_COMPLETE,
        RoundStatus.BETTING,
        RoundStatus.VOTING,
        RoundStatus.EMERGENCY_VOTING,
        RoundStatus.COMPLETE,
    }),
    RoundStatus.HINTS_COMPLETE: frozenset({
        RoundStatus.BETTING,
        RoundStatus.VOTING,
        RoundStatus.EMERGENCY_VOTING,
        RoundStatus.COMPLETE,
    }),
    RoundStatus.BETTING: frozenset({RoundStatus.VOTING, RoundStatus.COMPLETE}),
    RoundStatus.VOTING: frozenset({RoundStatus.GUESSING, RoundStatus.COMPLETE}),
    RoundStatus.EMERGENCY_VOTING: frozenset({RoundStatus.COMPLETE}),
    RoundStatus.GUESSING: frozenset({RoundStatus.COMPLETE}),
    RoundStatus.COMPLETE: frozenset(),
}


def can_transition(current: RoundStatus, target: RoundStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(round_obj, target: RoundStatus):
    current = round_obj.status
    if not can_transition(current, target):
        raise InvalidStateTransition(current, target)
    round_obj.status = target
    round_obj.touch()
    return round_obj
