from flask import request
from flask_socketio import join_room, leave_room, emit
from typing import Dict, Any

from imposter import socketio
from imposter.auth import belongs_to_lobby
from imposter.events import WS_NAMESPACE, lobby_topic, player_topic


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def handle_connect():
    emit('connected', {'message': f'Connected to {WS_NAMESPACE}'})


def handle_disconnect(reason=None):
    # Presence is owned by the host's remove action; a dropped socket only
    # forgets its room bookkeeping.
    _sid_to_ctx.pop(_get_sid(), None)


def handle_join_lobby(data):
    lobby_id = _as_int((data or {}).get('lobby_id'))
    player_id = _as_int((data or {}).get('player_id'))
    if not lobby_id or not player_id:
        emit('error', {'message': 'lobby_id and player_id are required'})
        return
    if not belongs_to_lobby(lobby_id, player_id):
        emit('error', {'message': 'Invalid player or lobby'})
        return

    room = lobby_topic(lobby_id)
    join_room(room)
    join_room(player_topic(lobby_id, player_id))
    _sid_to_ctx[_get_sid()] = {'lobby_id': lobby_id, 'player_id': player_id}
    emit('joined', {'room': room})


def handle_leave_lobby(data):
    lobby_id = _as_int((data or {}).get('lobby_id'))
    if not lobby_id:
        emit('error', {'message': 'lobby_id is required'})
        return
    room = lobby_topic(lobby_id)
    leave_room(room)
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx and ctx.get('lobby_id') == lobby_id:
        leave_room(player_topic(lobby_id, ctx['player_id']))
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [WS_NAMESPACE, '/'] if testing else [WS_NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_lobby', handle_join_lobby, namespace=namespace)
        socketio.on_event('leave_lobby', handle_leave_lobby, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
