"""Round lifecycle: the only place that decides phase transitions.

Each public operation runs inside ``@transactional``: the lobby row is locked
first, then the lobby's unfinished round, so operations on one lobby are
serialized and a completion (last hint, last vote) is detected and acted on
in the same transaction that caused it. Events staged on the outbox go out
only after the commit.
"""
import random

from flask import current_app

from imposter import db
from imposter.auth import belongs_to_lobby
from imposter.database import flush_unique, latest_round, lock_active_round, lock_lobby, transactional
from imposter.errors import (
    GameInProgress, InsufficientPlayers, NoActiveRound, NotAuthorized, NotLobbyOwner,
    NotYourTurn, PlayerNotFound, SelfVote, ValidationError, WrongPhase,
)
from imposter import events
from imposter.models import Bet, EmergencyVote, Hint, Round, RoundStatus, Vote, VOTING_STATUSES
from . import betting, emergency
from .matching import fuzzy_match
from .scoring import ScoreSheet, current_scores, reset_scores
from .state_machine import transition
from .tally import quorum_reached, record_vote, round_votes, tally
from .turns import active_player, is_last_turn
from .words import get_word_supplier

_rng = random.SystemRandom()


def _config(name, default):
    return current_app.config.get(name, default)


def _lobby_player(lobby, player_id):
    player = next((p for p in lobby.players if p.id == player_id), None)
    if player is None:
        raise PlayerNotFound(player_id)
    return player


def acting_player(lobby, player_id):
    """The online player ``player_id`` of ``lobby``, or ``NotAuthorized``."""
    if not belongs_to_lobby(lobby.id, player_id):
        raise NotAuthorized()
    player = _lobby_player(lobby, player_id)
    if not player.is_online:
        raise NotAuthorized('You have been removed from this game')
    return player


def _require_round(lobby):
    round_obj = lock_active_round(lobby.id)
    if round_obj is None:
        raise NoActiveRound()
    return round_obj


# ============ Phase completion (shared with roster adjustments) ============

def complete_hints(outbox, round_obj, lobby):
    """Move a round whose hint turns are used up into betting or voting."""
    if lobby.betting_enabled:
        transition(round_obj, RoundStatus.BETTING)
        outbox.to_lobby(lobby.id, events.BETTING_STARTED,
                        duration_sec=int(_config('BETTING_DURATION_SEC', 15)))
    else:
        transition(round_obj, RoundStatus.VOTING)
        outbox.to_lobby(lobby.id, events.VOTING_STARTED)
    current_app.logger.info(f"[hints-complete] lobby={lobby.id} round={round_obj.id} next={round_obj.status.value}")


def finalize_voting_if_complete(outbox, round_obj, lobby):
    """Resolve the vote once every online player has voted.

    Returns the voting outcome, or None while votes are still missing. Must be
    called inside the transaction that committed the deciding change (the
    last vote or a removal that shrank the quorum).
    """
    if round_obj.status not in VOTING_STATUSES:
        return None
    votes = round_votes(round_obj)
    online_ids = {p.id for p in lobby.online_players}
    if not quorum_reached(votes, online_ids):
        return None

    result = tally(votes)
    imposter = _lobby_player(lobby, round_obj.imposter_id)
    sheet = ScoreSheet()
    is_emergency = round_obj.status == RoundStatus.EMERGENCY_VOTING

    if is_emergency:
        caught = emergency.settle(round_obj, lobby, result, sheet)
        bet_results = []
    else:
        caught = result.caught(round_obj.imposter_id)
        bet_results = betting.resolve_payouts(round_obj, round_obj.imposter_id)
        if not caught:
            sheet.award(imposter, 1, 'evaded detection')

    outcome = {
        **result.to_dict(),
        'imposter_id': round_obj.imposter_id,
        'was_imposter_caught': caught,
        'emergency': is_emergency,
    }
    if bet_results:
        outbox.to_lobby(lobby.id, events.BET_RESULTS, results=[r.to_dict() for r in bet_results])
    outbox.to_lobby(lobby.id, events.VOTING_COMPLETE, results=outcome)
    current_app.logger.info(
        f"[voting-complete] lobby={lobby.id} round={round_obj.id} voted_out={result.voted_out_player_id} "
        f"caught={caught} emergency={is_emergency} bets={len(bet_results)}"
    )

    if caught and not is_emergency:
        transition(round_obj, RoundStatus.GUESSING)
        outbox.to_player(lobby.id, imposter.id, events.GUESS_WORD_PROMPT)
    else:
        complete_round(outbox, round_obj, lobby, sheet, caught=caught, tally_result=result)
    outcome['status'] = round_obj.status.value
    return outcome


def complete_round(outbox, round_obj, lobby, sheet, caught, tally_result=None, reason=None,
                   guess=None, guessed_correctly=None):
    transition(round_obj, RoundStatus.COMPLETE)
    scores = current_scores(lobby.id)
    imposter = _lobby_player(lobby, round_obj.imposter_id)
    if tally_result is None:
        tally_result = tally(round_votes(round_obj))

    result = {
        'round_id': round_obj.id,
        'round_number': round_obj.round_number,
        'word': round_obj.word,
        'category': round_obj.category,
        'imposter_id': imposter.id,
        'imposter_name': imposter.name,
        'was_imposter_caught': caught,
        'emergency': round_obj.emergency_vote is not None,
        'reason': reason,
        'imposter_guess': guess,
        'imposter_guessed_correctly': guessed_correctly,
        'votes': {str(k): v for k, v in tally_result.votes_by_suspect.items()},
        'bet_results': [r.to_dict() for r in betting.settled_results(round_obj)],
        'points_awarded': sheet.awards,
        'new_scores': {str(pid): score for pid, score in scores.items()},
    }

    winner = _game_winner(lobby, scores)
    if winner is not None:
        result['winner'] = winner.id
    outbox.to_lobby(lobby.id, events.ROUND_RESULTS, result=result)
    if winner is not None:
        outbox.to_lobby(
            lobby.id, events.GAME_OVER,
            winner={**winner.to_dict(), 'score': scores[winner.id]},
            final_scores=result['new_scores'],
        )
    current_app.logger.info(
        f"[round-complete] lobby={lobby.id} round={round_obj.id} caught={caught} reason={reason!r} "
        f"winner={winner.id if winner else None}"
    )
    return result


def _game_winner(lobby, scores):
    """Highest scorer at or above the target score; earliest joiner wins ties."""
    contenders = [p for p in lobby.players if scores.get(p.id, 0) >= lobby.target_score]
    if not contenders:
        return None
    return max(contenders, key=lambda p: (scores[p.id], -p.id))


# ============ Public operations ============

@transactional
def start_round(outbox, lobby_id, player_id):
    lobby = lock_lobby(lobby_id)
    if lobby.owner_id != player_id:
        raise NotLobbyOwner('Only lobby owner can start game')

    players = lobby.online_players
    min_players = int(_config('MIN_PLAYERS', 3))
    if len(players) < min_players:
        raise InsufficientPlayers(min_players)
    if lock_active_round(lobby.id) is not None:
        raise GameInProgress()

    last = latest_round(lobby.id)
    word, category = get_word_supplier().next_word()
    player_ids = [p.id for p in players]
    imposter_id = _rng.choice(player_ids)
    turn_order = list(player_ids)
    _rng.shuffle(turn_order)

    round_obj = Round(
        lobby_id=lobby.id,
        round_number=(last.round_number + 1) if last else 1,
        word=word,
        category=category,
        imposter_id=imposter_id,
        current_turn=0,
        status=RoundStatus.IN_PROGRESS,
    )
    round_obj.turn_order = turn_order
    flush_unique(round_obj, GameInProgress())

    for player in players:
        is_imposter = player.id == imposter_id
        outbox.to_player(
            lobby.id, player.id, events.ROLE_ASSIGNED,
            role='IMPOSTER' if is_imposter else 'CIVILIAN',
            word=None if is_imposter else word,
            category=category,
        )
    outbox.to_lobby(lobby.id, events.GAME_STARTED, round=round_obj.to_dict(), target_score=lobby.target_score)
    current_app.logger.info(
        f"[round-start] lobby={lobby.id} round={round_obj.id} number={round_obj.round_number} players={len(players)}"
    )
    return {
        'round_id': round_obj.id,
        'round_number': round_obj.round_number,
        'turn_order': turn_order,
        'first_player': turn_order[0],
    }


@transactional
def submit_hint(outbox, lobby_id, player_id, text):
    text = (text or '').strip()
    if not text:
        raise ValidationError('Hint text is required')
    max_len = int(_config('MAX_HINT_LENGTH', 30))
    if len(text) > max_len:
        raise ValidationError(f'Hint must be at most {max_len} characters')

    lobby = lock_lobby(lobby_id)
    player = acting_player(lobby, player_id)
    round_obj = _require_round(lobby)
    if round_obj.status != RoundStatus.IN_PROGRESS:
        raise WrongPhase('Hints are not being accepted right now')

    turn_order = round_obj.turn_order
    if active_player(turn_order, round_obj.current_turn) != player.id:
        raise NotYourTurn()

    hint = Hint(round_id=round_obj.id, player_id=player.id, text=text, turn_index=round_obj.current_turn)
    db.session.add(hint)
    db.session.flush()
    outbox.to_lobby(lobby.id, events.HINT_SUBMITTED, hint=hint.to_dict())

    passes = int(_config('HINT_PASSES', 2))
    finished = is_last_turn(turn_order, round_obj.current_turn, passes)
    round_obj.current_turn += 1
    round_obj.touch()
    if finished:
        complete_hints(outbox, round_obj, lobby)
    else:
        outbox.to_lobby(
            lobby.id, events.TURN_CHANGED,
            current_turn=round_obj.current_turn,
            player_id=active_player(turn_order, round_obj.current_turn),
        )
    return {
        'hint_id': hint.id,
        'round_id': round_obj.id,
        'next_turn': round_obj.current_turn,
        'is_complete': finished,
        'status': round_obj.status.value,
    }


@transactional
def complete_betting_phase(outbox, lobby_id, round_id=None):
    """Force the betting phase over; a no-op once the round has moved on."""
    lobby = lock_lobby(lobby_id)
    round_obj = lock_active_round(lobby.id)
    if round_obj is None or round_obj.status != RoundStatus.BETTING or (round_id and round_obj.id != round_id):
        return {'advanced': False, 'status': round_obj.status.value if round_obj else None}

    transition(round_obj, RoundStatus.VOTING)
    outbox.to_lobby(lobby.id, events.VOTING_STARTED)
    current_app.logger.info(f"[betting-complete] lobby={lobby.id} round={round_obj.id}")
    return {'advanced': True, 'status': round_obj.status.value}


@transactional
def place_bet(outbox, lobby_id, bettor_id, target_id, amount):
    lobby = lock_lobby(lobby_id)
    bettor = acting_player(lobby, bettor_id)
    round_obj = _require_round(lobby)
    target = _lobby_player(lobby, target_id)

    bet = betting.place_bet(round_obj, lobby, bettor, target, amount)
    outbox.to_lobby(lobby.id, events.BET_PLACED, bet=bet.to_dict())
    return {'bet_id': bet.id}


@transactional
def cast_vote(outbox, lobby_id, voter_id, suspect_id, bet=None):
    """Record a vote, optionally together with a bet, and finish the vote if it was the last one.

    ``bet`` is ``{'target_id': ..., 'amount': ...}``. The bet may name a
    different player than the vote (hedging). Vote and bet commit together or
    not at all.
    """
    lobby = lock_lobby(lobby_id)
    voter = acting_player(lobby, voter_id)
    round_obj = _require_round(lobby)
    if round_obj.status not in VOTING_STATUSES:
        raise WrongPhase('No voting phase active')
    suspect = _lobby_player(lobby, suspect_id)
    if voter.id == suspect.id:
        raise SelfVote()

    placed_bet = None
    if bet:
        target = _lobby_player(lobby, bet.get('target_id'))
        placed_bet = betting.place_bet(round_obj, lobby, voter, target, bet.get('amount'))
    vote = record_vote(round_obj, voter, suspect)
    round_obj.touch()

    if placed_bet is not None:
        outbox.to_lobby(lobby.id, events.BET_PLACED, bet=placed_bet.to_dict())
    outbox.to_lobby(lobby.id, events.VOTE_CAST, voter_id=voter.id, voter_name=voter.name)

    outcome = finalize_voting_if_complete(outbox, round_obj, lobby)
    return {
        'vote_id': vote.id,
        'bet_id': placed_bet.id if placed_bet is not None else None,
        'voting_complete': outcome is not None,
        'results': outcome,
        'status': round_obj.status.value,
    }


@transactional
def initiate_emergency_vote(outbox, lobby_id, initiator_id):
    lobby = lock_lobby(lobby_id)
    initiator = acting_player(lobby, initiator_id)
    round_obj = _require_round(lobby)

    emergency.initiate(round_obj, lobby, initiator)
    outbox.to_lobby(lobby.id, events.EMERGENCY_VOTE_INITIATED,
                    initiator_id=initiator.id, initiator_name=initiator.name)
    outbox.to_lobby(lobby.id, events.EMERGENCY_VOTING_STARTED)
    current_app.logger.info(f"[emergency-vote] lobby={lobby.id} round={round_obj.id} initiator={initiator.id}")
    return {'round_id': round_obj.id, 'status': round_obj.status.value}


@transactional
def submit_guess(outbox, lobby_id, player_id, guess):
    guess = (guess or '').strip()
    if not guess:
        raise ValidationError('Guess is required')

    lobby = lock_lobby(lobby_id)
    player = acting_player(lobby, player_id)
    round_obj = _require_round(lobby)
    if round_obj.status != RoundStatus.GUESSING:
        raise WrongPhase('No active guessing round')
    if player.id != round_obj.imposter_id:
        raise NotAuthorized('Only imposter can guess')

    correct = fuzzy_match(guess, round_obj.word)
    sheet = ScoreSheet()
    if correct:
        sheet.award(player, 1, 'guessed the word')
    else:
        civilians = [p for p in lobby.online_players if p.id != player.id]
        sheet.award_each(civilians, 1, 'imposter guessed wrong')

    result = complete_round(outbox, round_obj, lobby, sheet, caught=True, guess=guess, guessed_correctly=correct)
    return {'correct': correct, 'word': round_obj.word, 'result': result}


@transactional
def restart_game(outbox, lobby_id, player_id):
    lobby = lock_lobby(lobby_id)
    if lobby.owner_id != player_id:
        raise NotLobbyOwner('Only the host can restart the game')

    round_ids = [rid for (rid,) in db.session.query(Round.id).filter(Round.lobby_id == lobby.id).all()]
    if round_ids:
        for model in (Bet, Vote, Hint, EmergencyVote):
            db.session.query(model).filter(model.round_id.in_(round_ids)).delete(synchronize_session='fetch')
        db.session.query(Round).filter(Round.lobby_id == lobby.id).delete(synchronize_session='fetch')
    reset_scores(lobby.id)

    outbox.to_lobby(lobby.id, events.GAME_RESTARTED)
    current_app.logger.info(f"[restart] lobby={lobby.id} rounds_deleted={len(round_ids)}")
    return {'rounds_deleted': len(round_ids)}
