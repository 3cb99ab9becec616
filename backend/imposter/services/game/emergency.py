"""Emergency votes: an early, one-shot vote called during the hint phase.

The caller stakes their reputation: catching the imposter pays the initiator
2 and every other civilian 1; a miss costs the initiator 1 and pays the
imposter 1. The round always ends afterwards, with no guessing turn and no
bet settlement.
"""
from imposter import db
from imposter.database import flush_unique
from imposter.errors import EmergencyVoteInProgress, NotAuthorized, WrongPhase
from imposter.models import EmergencyVote, HINT_STATUSES, RoundStatus
from .scoring import ScoreSheet
from .state_machine import transition


def initiate(round_obj, lobby, initiator) -> EmergencyVote:
    if not lobby.emergency_votes_enabled:
        raise WrongPhase('Emergency votes are not enabled for this lobby')
    if round_obj.status == RoundStatus.EMERGENCY_VOTING:
        raise EmergencyVoteInProgress()
    if round_obj.status not in HINT_STATUSES:
        raise WrongPhase('Emergency votes can only be called during the hint phase')
    if initiator.id == round_obj.imposter_id:
        raise NotAuthorized('You cannot initiate an emergency vote')
    if db.session.query(EmergencyVote.id).filter_by(round_id=round_obj.id).first():
        raise EmergencyVoteInProgress()

    emergency = EmergencyVote(round_id=round_obj.id, initiator_id=initiator.id)
    flush_unique(emergency, EmergencyVoteInProgress())
    transition(round_obj, RoundStatus.EMERGENCY_VOTING)
    return emergency


def settle(round_obj, lobby, result, sheet: ScoreSheet) -> bool:
    """Award emergency-vote points for ``result``; returns whether the imposter was caught."""
    emergency = round_obj.emergency_vote
    players = {p.id: p for p in lobby.players}
    imposter = players[round_obj.imposter_id]
    initiator = players.get(emergency.initiator_id) if emergency else None
    caught = result.caught(round_obj.imposter_id)

    if caught:
        if initiator is not None:
            sheet.award(initiator, 2, 'emergency vote caught the imposter')
        others = [
            p for p in lobby.online_players
            if p.id != imposter.id and (initiator is None or p.id != initiator.id)
        ]
        sheet.award_each(others, 1, 'imposter caught')
    else:
        if initiator is not None:
            sheet.award(initiator, -1, 'emergency vote missed')
        sheet.award(imposter, 1, 'survived the emergency vote')
    return caught
