"""Races between the service pre-checks and the database constraints.

These tests run against a file-backed SQLite database so that a second
connection can commit a competing write while an operation is mid-flight.
"""
import pytest

from conftest import TestConfig, score_of
from imposter import create_app, db
from imposter.database import flush_unique
from imposter.errors import AlreadyBet, AlreadyVoted, ConcurrentUpdate, EmergencyVoteInProgress
from imposter.models import Bet, EmergencyVote, Round, RoundStatus, Vote
from imposter.services.game import betting, emergency, lifecycle, tally
from imposter.services.game.words import WordSupplier


@pytest.fixture()
def flask_app(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'imposter.db'}"

    application = create_app(FileConfig)
    with application.app_context():
        import imposter.models  # noqa: F401
        db.create_all()
        application.extensions['imposter.words'] = WordSupplier({'Animals': ['Elephant']})
        yield application
        db.session.remove()
        db.drop_all()


def _commit_elsewhere(statement):
    """Commit ``statement`` on a separate connection, like a competing request."""
    with db.engine.begin() as conn:
        conn.execute(statement)


def _insert_first(monkeypatch, module, statement):
    """Let a competing insert commit after ``module``'s pre-check but before its own insert."""
    def racing_flush(instance, error):
        _commit_elsewhere(statement)
        return flush_unique(instance, error)

    monkeypatch.setattr(module, 'flush_unique', racing_flush)


def test_vote_insert_race_keeps_one_vote(monkeypatch, broadcaster, make_lobby, make_round):
    lobby, p = make_lobby()
    round_obj = make_round(lobby, p['Charlie'], status=RoundStatus.VOTING)
    round_id, alice_id, bob_id = round_obj.id, p['Alice'].id, p['Bob'].id
    _insert_first(monkeypatch, tally, Vote.__table__.insert().values(
        round_id=round_id, voter_id=alice_id, suspect_id=bob_id,
    ))

    with pytest.raises(AlreadyVoted):
        lifecycle.cast_vote(lobby.id, alice_id, p['Charlie'].id)

    votes = Vote.query.filter_by(round_id=round_id).all()
    assert [(v.voter_id, v.suspect_id) for v in votes] == [(alice_id, bob_id)]
    assert broadcaster.published == []


def test_bet_insert_race_rolls_back_the_vote(monkeypatch, broadcaster, make_lobby, make_round):
    lobby, p = make_lobby(betting=True, scores={'Bob': 3})
    round_obj = make_round(lobby, p['Charlie'], status=RoundStatus.VOTING)
    round_id, bob_id, charlie_id = round_obj.id, p['Bob'].id, p['Charlie'].id
    _insert_first(monkeypatch, betting, Bet.__table__.insert().values(
        round_id=round_id, bettor_id=bob_id, target_id=p['Dave'].id, amount=1,
    ))

    with pytest.raises(AlreadyBet):
        lifecycle.cast_vote(lobby.id, bob_id, charlie_id, bet={'target_id': charlie_id, 'amount': 2})

    bets = Bet.query.filter_by(round_id=round_id).all()
    assert [(b.bettor_id, b.amount) for b in bets] == [(bob_id, 1)]
    # The vote was part of the same transaction
    assert Vote.query.filter_by(round_id=round_id).count() == 0
    assert score_of(p['Bob']) == 3
    assert broadcaster.published == []


def test_emergency_insert_race_keeps_first_caller(monkeypatch, broadcaster, make_lobby, make_round):
    lobby, p = make_lobby(emergency=True)
    round_obj = make_round(lobby, p['Charlie'])
    round_id, alice_id = round_obj.id, p['Alice'].id
    _insert_first(monkeypatch, emergency, EmergencyVote.__table__.insert().values(
        round_id=round_id, initiator_id=alice_id,
    ))

    with pytest.raises(EmergencyVoteInProgress):
        lifecycle.initiate_emergency_vote(lobby.id, p['Bob'].id)

    initiators = [e.initiator_id for e in EmergencyVote.query.filter_by(round_id=round_id)]
    assert initiators == [alice_id]
    # The losing caller did not move the round either
    assert db.session.get(Round, round_id).status == RoundStatus.IN_PROGRESS


def test_stale_round_version_is_a_concurrent_update(monkeypatch, broadcaster, make_lobby, make_round):
    lobby, p = make_lobby()
    round_obj = make_round(lobby, p['Charlie'], status=RoundStatus.VOTING)
    round_id, version = round_obj.id, round_obj.version
    rounds = Round.__table__
    real_record_vote = lifecycle.record_vote

    def record_after_competing_write(round_obj, voter, suspect):
        # Another request changed the round after this one loaded it
        _commit_elsewhere(
            rounds.update().where(rounds.c.id == round_id).values(version=rounds.c.version + 1)
        )
        return real_record_vote(round_obj, voter, suspect)

    monkeypatch.setattr(lifecycle, 'record_vote', record_after_competing_write)

    with pytest.raises(ConcurrentUpdate):
        lifecycle.cast_vote(lobby.id, p['Alice'].id, p['Charlie'].id)

    assert Vote.query.filter_by(round_id=round_id).count() == 0
    reloaded = db.session.get(Round, round_id)
    assert reloaded.version == version + 1
    assert reloaded.status == RoundStatus.VOTING
    assert broadcaster.published == []


def test_retry_after_concurrent_update_succeeds(monkeypatch, broadcaster, make_lobby, make_round):
    lobby, p = make_lobby()
    round_obj = make_round(lobby, p['Charlie'], status=RoundStatus.VOTING)
    round_id = round_obj.id
    rounds = Round.__table__
    real_record_vote = lifecycle.record_vote
    calls = []

    def record_vote_once_stale(round_obj, voter, suspect):
        if not calls:
            _commit_elsewhere(
                rounds.update().where(rounds.c.id == round_id).values(version=rounds.c.version + 1)
            )
        calls.append(voter.id)
        return real_record_vote(round_obj, voter, suspect)

    monkeypatch.setattr(lifecycle, 'record_vote', record_vote_once_stale)

    with pytest.raises(ConcurrentUpdate):
        lifecycle.cast_vote(lobby.id, p['Alice'].id, p['Charlie'].id)
    result = lifecycle.cast_vote(lobby.id, p['Alice'].id, p['Charlie'].id)

    assert result['voting_complete'] is False
    assert Vote.query.filter_by(round_id=round_id).count() == 1
    assert broadcaster.types() == ['VOTE_CAST']
