from flask import Blueprint, current_app, jsonify, request

from imposter.api import int_arg
from imposter.auth import belongs_to_lobby
from imposter.errors import NotAuthorized, ValidationError
from imposter.services.game import lifecycle, roster
from imposter.services.game.scheduler import schedule_betting_timer


game = Blueprint('game', __name__)


def _body():
    return request.get_json(silent=True) or {}


def _ids(data):
    return int_arg(data.get('lobby_id'), 'lobby_id'), int_arg(data.get('player_id'), 'player_id')


def _maybe_schedule_betting(lobby_id, result):
    if result.get('status') == 'BETTING':
        schedule_betting_timer(current_app._get_current_object(), lobby_id, result.get('round_id'))


@game.route('/start', methods=['POST'])
def start():
    lobby_id, player_id = _ids(_body())
    return jsonify(lifecycle.start_round(lobby_id, player_id)), 201


@game.route('/hint', methods=['POST'])
def hint():
    data = _body()
    lobby_id, player_id = _ids(data)
    result = lifecycle.submit_hint(lobby_id, player_id, data.get('text'))
    _maybe_schedule_betting(lobby_id, result)
    return jsonify(result)


@game.route('/betting-complete', methods=['POST'])
def betting_complete():
    data = _body()
    lobby_id, player_id = _ids(data)
    if not belongs_to_lobby(lobby_id, player_id):
        raise NotAuthorized()
    round_id = data.get('round_id')
    result = lifecycle.complete_betting_phase(
        lobby_id, round_id=int_arg(round_id, 'round_id') if round_id is not None else None
    )
    return jsonify(result)


@game.route('/bet', methods=['POST'])
def bet():
    data = _body()
    lobby_id, player_id = _ids(data)
    result = lifecycle.place_bet(
        lobby_id, player_id,
        int_arg(data.get('target_id'), 'target_id'),
        int_arg(data.get('amount'), 'amount'),
    )
    return jsonify(result), 201


@game.route('/vote', methods=['POST'])
def vote():
    data = _body()
    lobby_id, player_id = _ids(data)
    bet_data = data.get('bet')
    co_bet = None
    if bet_data:
        if not isinstance(bet_data, dict):
            raise ValidationError('bet must be an object')
        co_bet = {
            'target_id': int_arg(bet_data.get('target_id'), 'bet.target_id'),
            'amount': int_arg(bet_data.get('amount'), 'bet.amount'),
        }
    result = lifecycle.cast_vote(lobby_id, player_id, int_arg(data.get('suspect_id'), 'suspect_id'), bet=co_bet)
    return jsonify(result), 201


@game.route('/emergency-vote', methods=['POST'])
def emergency_vote():
    lobby_id, player_id = _ids(_body())
    return jsonify(lifecycle.initiate_emergency_vote(lobby_id, player_id))


@game.route('/guess', methods=['POST'])
def guess():
    data = _body()
    lobby_id, player_id = _ids(data)
    return jsonify(lifecycle.submit_guess(lobby_id, player_id, data.get('guess')))


@game.route('/remove-player', methods=['POST'])
def remove_player():
    data = _body()
    lobby_id, player_id = _ids(data)
    result = roster.remove_player(lobby_id, player_id, int_arg(data.get('target_id'), 'target_id'))
    _maybe_schedule_betting(lobby_id, result)
    return jsonify(result)


@game.route('/restart', methods=['POST'])
def restart():
    lobby_id, player_id = _ids(_body())
    return jsonify(lifecycle.restart_game(lobby_id, player_id))
