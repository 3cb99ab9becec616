"""Host-initiated player removal and its knock-on effects on a live round."""
from flask import current_app

from imposter import events
from imposter.database import latest_round, lock_active_round, lock_lobby, transactional
from imposter.errors import NotAuthorized, NotLobbyOwner, ValidationError, WrongPhase
from imposter.models import RoundStatus, VOTING_STATUSES
from . import betting
from .lifecycle import acting_player, complete_hints, complete_round, finalize_voting_if_complete
from .scoring import ScoreSheet
from .turns import active_player, remove_from_order, turns_exhausted


@transactional
def remove_player(outbox, lobby_id, host_id, target_id):
    lobby = lock_lobby(lobby_id)
    acting_player(lobby, host_id)
    if lobby.owner_id != host_id:
        raise NotLobbyOwner('Only the host can remove players')

    target = next((p for p in lobby.online_players if p.id == target_id), None)
    if target is None:
        raise ValidationError('Player is not in this game')

    min_players = int(current_app.config.get('MIN_PLAYERS', 3))
    if len(lobby.online_players) - 1 < min_players:
        raise ValidationError(f'Cannot remove player: minimum {min_players} players required')

    last = latest_round(lobby.id)
    if last is not None and last.status == RoundStatus.COMPLETE:
        raise WrongPhase('Cannot remove players between rounds')

    target.is_online = False
    outbox.to_lobby(lobby.id, events.PLAYER_REMOVED, player_id=target.id, player_name=target.name)
    current_app.logger.info(f"[player-removed] lobby={lobby.id} player={target.id} by={host_id}")

    round_ended, reason = False, None
    round_obj = lock_active_round(lobby.id)
    if round_obj is not None:
        if target.id == round_obj.imposter_id:
            round_ended, reason = True, _end_round_without_imposter(outbox, round_obj, lobby)
        else:
            _adjust_round(outbox, round_obj, lobby, target)
            round_ended = round_obj.status == RoundStatus.COMPLETE

    new_host_id = None
    if lobby.owner_id == target.id:
        new_host = _next_host(lobby)
        lobby.owner_id = new_host.id
        new_host_id = new_host.id
        outbox.to_lobby(lobby.id, events.HOST_CHANGED, host_id=new_host.id, host_name=new_host.name)
        current_app.logger.info(f"[host-changed] lobby={lobby.id} host={new_host.id}")

    return {
        'round_ended': round_ended,
        'reason': reason,
        'new_host_id': new_host_id,
        'round_id': round_obj.id if round_obj is not None else None,
        'status': round_obj.status.value if round_obj is not None else None,
    }


def _end_round_without_imposter(outbox, round_obj, lobby):
    if round_obj.status == RoundStatus.GUESSING:
        reason = 'Imposter forfeited during guessing - Civilians win!'
    else:
        reason = 'Imposter left the game - Civilians win!'

    betting.void_pending_bets(round_obj)
    sheet = ScoreSheet()
    civilians = [p for p in lobby.online_players if p.id != round_obj.imposter_id]
    sheet.award_each(civilians, 1, 'imposter left')
    complete_round(outbox, round_obj, lobby, sheet, caught=True, reason=reason)
    return reason


def _adjust_round(outbox, round_obj, lobby, target):
    betting.forfeit_bets_by(round_obj, target.id)
    betting.refund_bets_on(round_obj, target.id)
    round_obj.touch()

    if round_obj.status == RoundStatus.IN_PROGRESS:
        order, turn, _ = remove_from_order(round_obj.turn_order, round_obj.current_turn, target.id)
        round_obj.turn_order = order
        round_obj.current_turn = turn
        passes = int(current_app.config.get('HINT_PASSES', 2))
        if turns_exhausted(order, turn, passes):
            complete_hints(outbox, round_obj, lobby)
        else:
            outbox.to_lobby(
                lobby.id, events.TURN_CHANGED,
                current_turn=turn,
                player_id=active_player(order, turn),
            )
    elif round_obj.status in VOTING_STATUSES:
        finalize_voting_if_complete(outbox, round_obj, lobby)


def _next_host(lobby):
    candidates = sorted(lobby.online_players, key=lambda p: (p.joined_at, p.id))
    if not candidates:
        raise NotAuthorized('No player left to host the lobby')
    return candidates[0]
