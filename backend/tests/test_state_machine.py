import pytest

from imposter.errors import InvalidStateTransition
from imposter.models import Round, RoundStatus
from imposter.services.game.state_machine import TRANSITIONS, can_transition, transition


def test_every_status_has_a_transition_entry():
    assert set(TRANSITIONS) == set(RoundStatus)


def test_complete_is_terminal():
    assert TRANSITIONS[RoundStatus.COMPLETE] == frozenset()
    for status in RoundStatus:
        assert not can_transition(RoundStatus.COMPLETE, status)


def test_rounds_never_move_backwards():
    assert not can_transition(RoundStatus.VOTING, RoundStatus.IN_PROGRESS)
    assert not can_transition(RoundStatus.GUESSING, RoundStatus.VOTING)
    assert not can_transition(RoundStatus.EMERGENCY_VOTING, RoundStatus.GUESSING)


def test_transition_rejects_unlisted_move():
    round_obj = Round(status=RoundStatus.GUESSING)
    with pytest.raises(InvalidStateTransition) as exc:
        transition(round_obj, RoundStatus.BETTING)
    assert 'GUESSING' in str(exc.value)
    assert round_obj.status == RoundStatus.GUESSING


def test_transition_applies_listed_move():
    round_obj = Round(status=RoundStatus.BETTING)
    transition(round_obj, RoundStatus.VOTING)
    assert round_obj.status == RoundStatus.VOTING
    assert round_obj.updated_at is not None
