"""
Settlement engine. Resolves or voids a market and computes every bet's
payout.

Resolve:
  - winning bets pay potential_payout (1 credit per share)
  - losing bets pay 0, profit_loss = -stake
  - market → SETTLED, settlement_value = 1

Void (no clawbacks):
  - every active bet is refunded its stake, profit_loss = 0
  - market → VOIDED, reason kept verbatim in settlement_notes

Bets that already left ACTIVE (cashed out) and bets on other markets pass
through unchanged. A market that is already SETTLED or VOIDED is rejected
with AlreadyTerminal rather than paid out twice; callers should still
pass a freshly read market, under the same per-market serialization used
for bets.
"""

from dataclasses import dataclass, field
from typing import Sequence

import structlog

from amm.lifecycle import mark_settled, mark_voided
from amm.models import Bet, BetStatus, Clock, Market, utc_now


log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Settlement:
    """
    market: the terminal snapshot
    bets: every input bet, closed or passed through, in input order
    payouts: bet id → credits owed, for bets closed by this settlement
    """
    market: Market
    bets: list[Bet]
    payouts: dict[str, float] = field(default_factory=dict)

    @property
    def total_paid(self) -> float:
        return sum(self.payouts.values())


class SettlementEngine:

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock

    def settle_market(self, market: Market, winning_outcome_id: str,
                      bets: Sequence[Bet]) -> Settlement:
        now = self.clock()
        settled_market = mark_settled(market, winning_outcome_id, now)

        settled = []
        payouts = {}
        for bet in bets:
            if not bet.active or bet.market_id != market.id:
                settled.append(bet)
                continue
            if bet.outcome_id == winning_outcome_id:
                closed = bet.close(
                    BetStatus.WON, settled_amount=bet.potential_payout,
                    profit_loss=bet.potential_payout - bet.amount, at=now)
            else:
                closed = bet.close(
                    BetStatus.LOST, settled_amount=0.0,
                    profit_loss=-bet.amount, at=now)
            settled.append(closed)
            payouts[bet.id] = closed.settled_amount

        result = Settlement(market=settled_market, bets=settled,
                            payouts=payouts)
        log.info("market_settled", market_id=market.id,
                 winning_outcome_id=winning_outcome_id,
                 bets_closed=len(payouts), total_paid=result.total_paid)
        return result

    def void_market(self, market: Market, bets: Sequence[Bet],
                    reason: str) -> Settlement:
        now = self.clock()
        voided_market = mark_voided(market, reason, now)

        refunded = []
        payouts = {}
        for bet in bets:
            if not bet.active or bet.market_id != market.id:
                refunded.append(bet)
                continue
            refunded.append(bet.close(
                BetStatus.REFUNDED, settled_amount=bet.amount,
                profit_loss=0.0, at=now))
            payouts[bet.id] = bet.amount

        result = Settlement(market=voided_market, bets=refunded,
                            payouts=payouts)
        log.info("market_voided", market_id=market.id, reason=reason,
                 bets_closed=len(payouts), total_paid=result.total_paid)
        return result
