"""Bet validation, placement and payout settlement.

A bet stakes 1 to 3 of the bettor's points on who the imposter is. Nothing is
deducted at placement. When the vote that completes the tally commits, each
pending bet is settled once: a correct bet nets ``+amount`` (gross payout
``amount * 2``), a wrong one nets ``-amount`` (payout 0).
"""
from dataclasses import dataclass, asdict
from typing import List

from flask import current_app

from imposter import db
from imposter.database import flush_unique
from imposter.errors import (
    AlreadyBet, InsufficientPoints, InvalidBetAmount, NotAuthorized, SelfBet,
    ValidationError, WrongPhase,
)
from imposter.models import Bet, BetStatus, RoundStatus
from .scoring import apply_delta


@dataclass
class BetResult:
    bet_id: int
    bettor_id: int
    bettor_name: str
    target_id: int
    target_name: str
    amount: int
    won: bool
    payout: int

    def to_dict(self):
        return asdict(self)


def validate_amount(amount) -> int:
    min_bet = current_app.config.get('MIN_BET', 1)
    max_bet = current_app.config.get('MAX_BET', 3)
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidBetAmount()
    if amount < min_bet or amount > max_bet:
        raise InvalidBetAmount(f'Bet amount must be between {min_bet} and {max_bet}')
    return amount


def place_bet(round_obj, lobby, bettor, target, amount) -> Bet:
    """Validate and insert a bet; the caller's transaction commits it."""
    if not lobby.betting_enabled:
        raise WrongPhase('Betting is not enabled for this lobby')
    if round_obj.status == RoundStatus.EMERGENCY_VOTING:
        raise WrongPhase('Cannot bet during emergency voting')
    if round_obj.status != RoundStatus.VOTING:
        raise WrongPhase('No betting phase active')
    if bettor.id == round_obj.imposter_id:
        raise NotAuthorized('The imposter cannot place bets')
    if bettor.id == target.id:
        raise SelfBet()
    if target.lobby_id != lobby.id or not target.is_online:
        raise ValidationError('Invalid bet target')
    amount = validate_amount(amount)
    if db.session.query(Bet.id).filter_by(round_id=round_obj.id, bettor_id=bettor.id).first():
        raise AlreadyBet()
    if bettor.score < amount:
        raise InsufficientPoints()

    bet = Bet(round_id=round_obj.id, bettor_id=bettor.id, target_id=target.id, amount=amount)
    flush_unique(bet, AlreadyBet())
    round_obj.touch()
    return bet


def pending_bets(round_obj) -> List[Bet]:
    return (
        db.session.query(Bet)
        .filter(Bet.round_id == round_obj.id, Bet.status == BetStatus.PENDING)
        .order_by(Bet.id)
        .all()
    )


def resolve_payouts(round_obj, imposter_id: int) -> List[BetResult]:
    results = []
    for bet in pending_bets(round_obj):
        won = bet.target_id == imposter_id
        bet.payout = bet.amount * 2 if won else 0
        bet.status = BetStatus.WON if won else BetStatus.LOST
        apply_delta(bet.bettor_id, bet.amount if won else -bet.amount)
        results.append(_result(bet))
    return results


def _result(bet) -> BetResult:
    return BetResult(
        bet_id=bet.id,
        bettor_id=bet.bettor_id,
        bettor_name=bet.bettor.name,
        target_id=bet.target_id,
        target_name=bet.target.name,
        amount=bet.amount,
        won=bet.status == BetStatus.WON,
        payout=bet.payout,
    )


def settled_results(round_obj) -> List[BetResult]:
    """Results of the bets that were won or lost when voting finished."""
    bets = (
        db.session.query(Bet)
        .filter(Bet.round_id == round_obj.id, Bet.status.in_([BetStatus.WON, BetStatus.LOST]))
        .order_by(Bet.id)
        .all()
    )
    return [_result(bet) for bet in bets]


def forfeit_bets_by(round_obj, player_id: int) -> List[Bet]:
    """Bets placed by a removed player are lost on the spot."""
    forfeited = [b for b in pending_bets(round_obj) if b.bettor_id == player_id]
    for bet in forfeited:
        bet.payout = -bet.amount
        bet.status = BetStatus.FORFEITED
        apply_delta(bet.bettor_id, -bet.amount)
    return forfeited


def refund_bets_on(round_obj, player_id: int) -> List[Bet]:
    """Bets on a removed player are voided without any score change."""
    refunded = [b for b in pending_bets(round_obj) if b.target_id == player_id]
    for bet in refunded:
        _refund(bet)
    return refunded


def void_pending_bets(round_obj) -> List[Bet]:
    voided = pending_bets(round_obj)
    for bet in voided:
        _refund(bet)
    return voided


def _refund(bet):
    bet.payout = 0
    bet.status = BetStatus.REFUNDED
