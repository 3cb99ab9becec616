from imposter import db
from imposter.models import Player
from typing import Dict, Iterable, List


def apply_delta(player_id: int, delta: int) -> None:
    """Add ``delta`` to a player's score as one SQL increment.

    This is the only place scores change during play. The update is computed
    against the committed value (``score = score + delta``) rather than a
    value read earlier, so concurrent completion paths cannot lose points.
    """
    if not delta:
        return
    (
        db.session.query(Player)
        .filter(Player.id == player_id)
        .update({Player.score: Player.score + delta}, synchronize_session='fetch')
    )


def reset_scores(lobby_id: int) -> None:
    db.session.query(Player).filter(Player.lobby_id == lobby_id).update(
        {Player.score: 0}, synchronize_session='fetch'
    )


def current_scores(lobby_id: int) -> Dict[int, int]:
    rows = db.session.query(Player.id, Player.score).filter(Player.lobby_id == lobby_id).all()
    return {pid: score for pid, score in rows}


class ScoreSheet:
    """Applies point awards for one round and remembers them for the results."""

    def __init__(self):
        self.awards: List[dict] = []

    def award(self, player: Player, points: int, reason: str) -> None:
        apply_delta(player.id, points)
        self.awards.append({
            'player_id': player.id,
            'player_name': player.name,
            'points': points,
            'reason': reason,
        })

    def award_each(self, players: Iterable[Player], points: int, reason: str) -> None:
        for player in players:
            self.award(player, points, reason)
