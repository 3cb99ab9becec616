"""Lobby creation, joining and the authoritative lobby view."""
from flask import current_app

from imposter import db, events
from imposter.database import flush_unique, latest_round, lock_active_round, lock_lobby, transactional
from imposter.errors import GameInProgress, LobbyNotFound, ValidationError
from imposter.models import Lobby, Player, RoundStatus, VOTING_STATUSES, Vote, generate_lobby_code


def _clean_name(name) -> str:
    name = (name or '').strip() if isinstance(name, str) else ''
    if not name:
        raise ValidationError('Player name is required')
    max_len = int(current_app.config.get('MAX_PLAYER_NAME_LENGTH', 20))
    if len(name) > max_len:
        raise ValidationError(f'Player name must be at most {max_len} characters')
    return name


@transactional
def create_lobby(outbox, player_name, target_score=None, betting_enabled=False, emergency_votes_enabled=False):
    name = _clean_name(player_name)
    if target_score is None:
        target_score = int(current_app.config.get('DEFAULT_TARGET_SCORE', 7))
    if isinstance(target_score, bool) or not isinstance(target_score, int) or not 1 <= target_score <= 50:
        raise ValidationError('Target score must be between 1 and 50')

    lobby = Lobby(
        code=generate_lobby_code(int(current_app.config.get('LOBBY_CODE_LENGTH', 6))),
        target_score=target_score,
        betting_enabled=bool(betting_enabled),
        emergency_votes_enabled=bool(emergency_votes_enabled),
    )
    db.session.add(lobby)
    db.session.flush()
    owner = Player(name=name, lobby_id=lobby.id)
    db.session.add(owner)
    db.session.flush()
    lobby.owner_id = owner.id

    current_app.logger.info(f"[lobby-create] lobby={lobby.id} code={lobby.code} owner={owner.id}")
    return {'lobby': lobby.to_dict(), 'player_id': owner.id}


@transactional
def join_lobby(outbox, lobby_code, player_name):
    name = _clean_name(player_name)
    lobby = find_lobby_by_code(lobby_code)
    lobby = lock_lobby(lobby.id)
    if lock_active_round(lobby.id) is not None:
        raise GameInProgress('Cannot join while a round is in progress')

    max_players = int(current_app.config.get('MAX_PLAYERS', 10))
    if len(lobby.online_players) >= max_players:
        raise ValidationError(f'Lobby is full (max {max_players} players)')
    if any(p.name.lower() == name.lower() for p in lobby.players):
        raise ValidationError('Name already taken in this lobby')

    player = flush_unique(Player(name=name, lobby_id=lobby.id), ValidationError('Name already taken in this lobby'))
    outbox.to_lobby(lobby.id, events.PLAYER_JOINED, player=player.to_dict())
    current_app.logger.info(f"[lobby-join] lobby={lobby.id} player={player.id}")
    return {'lobby': lobby.to_dict(), 'player_id': player.id}


def find_lobby_by_code(code) -> Lobby:
    code = (code or '').strip().upper() if isinstance(code, str) else ''
    lobby = Lobby.query.filter_by(code=code).first() if code else None
    if lobby is None:
        raise LobbyNotFound(code)
    return lobby


def lobby_state(lobby, round_obj) -> str:
    if round_obj is None:
        return 'LOBBY'
    if round_obj.status == RoundStatus.COMPLETE:
        if any(p.score >= lobby.target_score for p in lobby.players):
            return 'GAME_OVER'
        return 'ROUND_RESULTS'
    if round_obj.status == RoundStatus.HINTS_COMPLETE:
        return RoundStatus.IN_PROGRESS.value
    return round_obj.status.value


def lobby_view(lobby_id, player_id=None) -> dict:
    """Everything a client needs to redraw the lobby, from the store alone."""
    lobby = db.session.get(Lobby, lobby_id)
    if lobby is None:
        raise LobbyNotFound(lobby_id)
    round_obj = latest_round(lobby.id)

    view = lobby.to_dict()
    view['state'] = lobby_state(lobby, round_obj)
    view['round'] = round_obj.to_dict() if round_obj is not None else None
    if round_obj is not None and round_obj.status in VOTING_STATUSES:
        voters = db.session.query(Vote.voter_id).filter(Vote.round_id == round_obj.id).all()
        view['round']['voted_player_ids'] = sorted(v for (v,) in voters)

    me = next((p for p in lobby.players if p.id == player_id), None) if player_id else None
    if me is not None:
        view['me'] = {'player_id': me.id, 'is_host': lobby.owner_id == me.id, 'is_online': me.is_online}
        if round_obj is not None and round_obj.status != RoundStatus.COMPLETE:
            is_imposter = me.id == round_obj.imposter_id
            view['me']['role'] = 'IMPOSTER' if is_imposter else 'CIVILIAN'
            view['me']['word'] = None if is_imposter else round_obj.word
    return view
