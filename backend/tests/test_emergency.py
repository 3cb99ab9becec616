import pytest

from conftest import score_of
from imposter import db
from imposter.errors import EmergencyVoteInProgress, NotAuthorized, WrongPhase
from imposter.models import EmergencyVote, Round, RoundStatus
from imposter.services.game import lifecycle


def _emergency_lobby(make_lobby, make_round, status=RoundStatus.IN_PROGRESS, **kwargs):
    lobby, p = make_lobby(emergency=True, **kwargs)
    round_obj = make_round(lobby, p['Charlie'], status=status)
    return lobby, p, round_obj


def test_second_emergency_vote_is_rejected(broadcaster, make_lobby, make_round):
    lobby, p, round_obj = _emergency_lobby(make_lobby, make_round)

    result = lifecycle.initiate_emergency_vote(lobby.id, p['Bob'].id)
    assert result['status'] == 'EMERGENCY_VOTING'

    with pytest.raises(EmergencyVoteInProgress) as exc:
        lifecycle.initiate_emergency_vote(lobby.id, p['Alice'].id)
    assert 'already in progress' in str(exc.value)
    assert EmergencyVote.query.filter_by(round_id=round_obj.id).count() == 1
    assert broadcaster.types() == ['EMERGENCY_VOTE_INITIATED', 'EMERGENCY_VOTING_STARTED']


def test_imposter_cannot_call_emergency_vote(broadcaster, make_lobby, make_round):
    lobby, p, _ = _emergency_lobby(make_lobby, make_round)
    with pytest.raises(NotAuthorized):
        lifecycle.initiate_emergency_vote(lobby.id, p['Charlie'].id)


def test_emergency_vote_only_during_hints(broadcaster, make_lobby, make_round):
    lobby, p, _ = _emergency_lobby(make_lobby, make_round, status=RoundStatus.VOTING)
    with pytest.raises(WrongPhase):
        lifecycle.initiate_emergency_vote(lobby.id, p['Bob'].id)


def test_emergency_votes_disabled(broadcaster, make_lobby, make_round):
    lobby, p = make_lobby()
    make_round(lobby, p['Charlie'])
    with pytest.raises(WrongPhase):
        lifecycle.initiate_emergency_vote(lobby.id, p['Bob'].id)


def test_no_betting_during_emergency_vote(broadcaster, make_lobby, make_round):
    lobby, p, _ = _emergency_lobby(make_lobby, make_round, betting=True, scores={'Bob': 3})
    lifecycle.initiate_emergency_vote(lobby.id, p['Bob'].id)
    with pytest.raises(WrongPhase):
        lifecycle.place_bet(lobby.id, p['Bob'].id, p['Charlie'].id, 1)


def test_emergency_vote_catches_imposter(broadcaster, make_lobby, make_round):
    lobby, p, round_obj = _emergency_lobby(make_lobby, make_round)
    lifecycle.initiate_emergency_vote(lobby.id, p['Bob'].id)

    for voter in ('Alice', 'Bob', 'Dave'):
        lifecycle.cast_vote(lobby.id, p[voter].id, p['Charlie'].id)
    result = lifecycle.cast_vote(lobby.id, p['Charlie'].id, p['Bob'].id)

    assert result['results']['emergency'] is True
    assert result['status'] == 'COMPLETE'
    assert db.session.get(Round, round_obj.id).status == RoundStatus.COMPLETE
    assert [score_of(p[n]) for n in ('Alice', 'Bob', 'Charlie', 'Dave')] == [1, 2, 0, 1]
    assert not broadcaster.of_type('GUESS_WORD_PROMPT')
    assert broadcaster.of_type('ROUND_RESULTS')[0]['result']['emergency'] is True


def test_emergency_vote_miss_costs_initiator(broadcaster, make_lobby, make_round):
    lobby, p, _ = _emergency_lobby(make_lobby, make_round, scores={'Bob': 2})
    lifecycle.initiate_emergency_vote(lobby.id, p['Bob'].id)

    lifecycle.cast_vote(lobby.id, p['Alice'].id, p['Dave'].id)
    lifecycle.cast_vote(lobby.id, p['Bob'].id, p['Dave'].id)
    lifecycle.cast_vote(lobby.id, p['Charlie'].id, p['Dave'].id)
    lifecycle.cast_vote(lobby.id, p['Dave'].id, p['Charlie'].id)

    assert score_of(p['Bob']) == 1
    assert score_of(p['Charlie']) == 1
    assert score_of(p['Alice']) == 0
    assert score_of(p['Dave']) == 0
