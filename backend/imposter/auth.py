from imposter import db
from imposter.models import Player


def belongs_to_lobby(lobby_id, player_id) -> bool:
    """True when ``player_id`` is a player of ``lobby_id``.

    Players are identified by the id handed out at join time; this check
    stops a client from acting on behalf of a player in another lobby.
    """
    if not lobby_id or not player_id:
        return False
    return db.session.query(Player.id).filter_by(id=player_id, lobby_id=lobby_id).first() is not None
