"""Vote collection, quorum detection and plurality resolution."""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from imposter import db
from imposter.database import flush_unique
from imposter.errors import AlreadyVoted, SelfVote, ValidationError
from imposter.models import Vote


@dataclass
class TallyResult:
    vote_counts: Dict[int, int] = field(default_factory=dict)
    votes_by_suspect: Dict[int, List[int]] = field(default_factory=dict)
    winners: List[int] = field(default_factory=list)
    voted_out_player_id: Optional[int] = None

    def caught(self, imposter_id: int) -> bool:
        # Plurality rule: the imposter is caught only as the sole top suspect
        return self.voted_out_player_id is not None and self.voted_out_player_id == imposter_id

    def to_dict(self) -> dict:
        return {
            'vote_counts': {str(k): v for k, v in self.vote_counts.items()},
            'votes': {str(k): v for k, v in self.votes_by_suspect.items()},
            'winners': self.winners,
            'voted_out_player_id': self.voted_out_player_id,
        }


def tally(votes: Iterable[Vote]) -> TallyResult:
    by_suspect = defaultdict(list)
    for vote in votes:
        by_suspect[vote.suspect_id].append(vote.voter_id)

    result = TallyResult(votes_by_suspect=dict(by_suspect))
    if not by_suspect:
        return result

    result.vote_counts = {suspect: len(voters) for suspect, voters in by_suspect.items()}
    max_votes = max(result.vote_counts.values())
    result.winners = sorted(s for s, count in result.vote_counts.items() if count == max_votes)
    result.voted_out_player_id = result.winners[0] if len(result.winners) == 1 else None
    return result


def quorum_reached(votes: Iterable[Vote], online_ids: Set[int]) -> bool:
    """Every currently-online player has a committed vote."""
    if not online_ids:
        return False
    voters = {v.voter_id for v in votes}
    return online_ids <= voters


def round_votes(round_obj) -> List[Vote]:
    return db.session.query(Vote).filter(Vote.round_id == round_obj.id).all()


def record_vote(round_obj, voter, suspect) -> Vote:
    if voter.id == suspect.id:
        raise SelfVote()
    if not suspect.is_online:
        raise ValidationError('Cannot vote for a player who left the game')
    existing = db.session.query(Vote.id).filter_by(round_id=round_obj.id, voter_id=voter.id).first()
    if existing:
        raise AlreadyVoted()
    vote = Vote(round_id=round_obj.id, voter_id=voter.id, suspect_id=suspect.id)
    return flush_unique(vote, AlreadyVoted())
