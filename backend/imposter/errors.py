"""Domain exceptions raised by the round engine.

Every rule violation is a ``GameError`` subclass carrying the HTTP status the
API layer answers with. Raising one inside a ``@transactional`` operation
rolls back everything the operation wrote.
"""
from flask import jsonify
from werkzeug.exceptions import HTTPException


class GameError(Exception):
    """Base class for all game rule violations."""
    status_code = 400
    message = 'Invalid request'

    def __init__(self, message=None):
        super().__init__(message or self.message)


# ============ Validation ============

class ValidationError(GameError):
    status_code = 400


class SelfVote(ValidationError):
    message = 'Cannot vote for yourself'


class SelfBet(ValidationError):
    message = 'Cannot bet on yourself'


class InvalidBetAmount(ValidationError):
    message = 'Bet amount must be between 1 and 3'


class InsufficientPoints(GameError):
    status_code = 400
    message = 'Insufficient points for bet'


# ============ Authorization ============

class NotAuthorized(GameError):
    status_code = 403
    message = 'Invalid player or lobby'


class NotLobbyOwner(NotAuthorized):
    message = 'Only lobby owner can perform this action'


class NotYourTurn(NotAuthorized):
    message = 'Not your turn'


class WrongPhase(NotAuthorized):
    message = 'Action not allowed in the current phase'


# ============ Not found ============

class LobbyNotFound(GameError):
    status_code = 404

    def __init__(self, lobby_ref=None):
        self.lobby_ref = lobby_ref
        super().__init__('Lobby not found')


class PlayerNotFound(GameError):
    status_code = 404

    def __init__(self, player_id=None):
        self.player_id = player_id
        super().__init__('Player not found')


class NoActiveRound(GameError):
    status_code = 404
    message = 'No active round'


# ============ State conflicts ============

class StateConflict(GameError):
    status_code = 409


class AlreadyVoted(StateConflict):
    message = 'Already voted'


class AlreadyBet(StateConflict):
    message = 'Already placed bet'


class EmergencyVoteInProgress(StateConflict):
    message = 'An emergency vote is already in progress for this round'


class GameInProgress(StateConflict):
    message = 'Game already in progress'


class InsufficientPlayers(StateConflict):
    status_code = 400

    def __init__(self, required=3):
        self.required = required
        super().__init__(f'Need at least {required} players')


class InvalidStateTransition(StateConflict):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f'Cannot move round from {current.value} to {target.value}')


class ConcurrentUpdate(StateConflict):
    message = 'The round was updated by another request, please retry'


def register_error_handlers(flask_app):
    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        return jsonify({'error': str(exc)}), exc.status_code

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({'error': exc.description}), exc.code

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        flask_app.logger.error(f"[internal-error] {type(exc).__name__}: {exc}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500
