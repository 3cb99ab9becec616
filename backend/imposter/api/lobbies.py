from flask import Blueprint, jsonify, request

from imposter.api import int_arg
from imposter.services.lobbies import create_lobby, find_lobby_by_code, join_lobby, lobby_view


lobbies = Blueprint('lobbies', __name__)


@lobbies.route('/create', methods=['POST'])
def create():
    data = request.get_json(silent=True) or {}
    target_score = data.get('target_score')
    result = create_lobby(
        data.get('player_name'),
        target_score=int_arg(target_score, 'target_score') if target_score is not None else None,
        betting_enabled=bool(data.get('betting_enabled')),
        emergency_votes_enabled=bool(data.get('emergency_votes_enabled')),
    )
    return jsonify(result), 201


@lobbies.route('/join', methods=['POST'])
def join():
    data = request.get_json(silent=True) or {}
    result = join_lobby(data.get('lobby_code'), data.get('player_name'))
    return jsonify(result), 201


@lobbies.route('/lookup', methods=['GET'])
def lookup():
    lobby = find_lobby_by_code(request.args.get('code'))
    return jsonify({'lobby_id': lobby.id, 'code': lobby.code})


@lobbies.route('/<int:lobby_id>', methods=['GET'])
def get_lobby(lobby_id):
    player_id = request.args.get('player_id')
    return jsonify(lobby_view(lobby_id, int_arg(player_id, 'player_id') if player_id else None))
