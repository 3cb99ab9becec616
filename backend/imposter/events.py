"""Outbound game events.

Operations stage events on an ``Outbox`` while their transaction is open; the
outbox is flushed to the broadcaster only after the commit succeeds, so a
rolled-back operation never announces anything.
"""
from flask import current_app
from imposter import socketio

ROLE_ASSIGNED = 'ROLE_ASSIGNED'
GAME_STARTED = 'GAME_STARTED'
HINT_SUBMITTED = 'HINT_SUBMITTED'
TURN_CHANGED = 'TURN_CHANGED'
BETTING_STARTED = 'BETTING_STARTED'
VOTING_STARTED = 'VOTING_STARTED'
VOTE_CAST = 'VOTE_CAST'
BET_PLACED = 'BET_PLACED'
VOTING_COMPLETE = 'VOTING_COMPLETE'
BET_RESULTS = 'BET_RESULTS'
GUESS_WORD_PROMPT = 'GUESS_WORD_PROMPT'
ROUND_RESULTS = 'ROUND_RESULTS'
GAME_OVER = 'GAME_OVER'
PLAYER_JOINED = 'PLAYER_JOINED'
PLAYER_REMOVED = 'PLAYER_REMOVED'
HOST_CHANGED = 'HOST_CHANGED'
EMERGENCY_VOTE_INITIATED = 'EMERGENCY_VOTE_INITIATED'
EMERGENCY_VOTING_STARTED = 'EMERGENCY_VOTING_STARTED'
GAME_RESTARTED = 'GAME_RESTARTED'

WS_NAMESPACE = '/ws'


def lobby_topic(lobby_id) -> str:
    return f"lobby:{lobby_id}"


def player_topic(lobby_id, player_id) -> str:
    return f"player:{lobby_id}:{player_id}"


class SocketIOBroadcaster:
    """Publishes events to Socket.IO rooms named after their topic."""

    def publish(self, topic: str, event: dict) -> None:
        name = 'private_event' if topic.startswith('player:') else 'game_event'
        socketio.emit(name, event, to=topic, namespace=WS_NAMESPACE)


def get_broadcaster():
    return current_app.extensions['imposter.broadcaster']


class Outbox:
    def __init__(self):
        self._pending = []

    def to_lobby(self, lobby_id, event_type: str, **payload) -> None:
        self._pending.append((lobby_topic(lobby_id), {'type': event_type, **payload}))

    def to_player(self, lobby_id, player_id, event_type: str, **payload) -> None:
        self._pending.append((player_topic(lobby_id, player_id), {'type': event_type, **payload}))

    def flush(self) -> None:
        broadcaster = get_broadcaster()
        pending, self._pending = self._pending, []
        for topic, event in pending:
            # Fire-and-forget: delivery problems never undo committed state
            try:
                broadcaster.publish(topic, event)
            except Exception as exc:
                current_app.logger.warning(f"[publish-failed] topic={topic} type={event.get('type')}: {exc}")
