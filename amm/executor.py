"""
Order executor. Prices and executes bets against the LMSR book.

Every bet is between a user and the market maker. Buying shares of one
outcome moves every outcome's price, so each accepted bet returns a fresh
market snapshot repriced from the whole post-trade quantity vector.

Validation is fail-fast, first failing check wins:
  1. market status is OPEN                 → MarketNotOpen
  2. now < closes_at                       → MarketClosed
  3. outcome exists                        → InvalidOutcome
  4. amount buys a positive share count    → InvalidAmount
  5. relative price move <= max_slippage   → SlippageExceeded

A rejected bet is rejected whole; there are no partial fills.

The executor has no side effects. Persisting the returned bet and market
and moving money through the ledger belong to the caller, which must also
serialize writers per market.
"""

import math
from dataclasses import dataclass, replace

import structlog

from amm.errors import (
    BetNotActive, InvalidAmount, InvalidOutcome, MarketClosed,
    MarketNotOpen, SlippageExceeded, ZeroValue,
)
from amm.lifecycle import is_betting_open, reprice
from amm.lmsr import price, shares_to_receive
from amm.models import (
    Bet, BetStatus, Clock, Market, MarketStatus,
    new_id, utc_now,
)
from amm.odds import clamp_probability, price_to_decimal_odds, round_cents


log = structlog.get_logger(__name__)

DEFAULT_MAX_SLIPPAGE = 0.05
CASH_OUT_FEE = 0.02
SHARE_PRECISION = 0.01


@dataclass(frozen=True)
class BetPlacement:
    bet: Bet
    market: Market


@dataclass(frozen=True)
class Quote:
    """What a bet would get right now, without executing it."""
    outcome_id: str
    amount: float
    shares: float
    current_price: float
    new_price: float
    slippage: float

    @property
    def average_price(self) -> float:
        return self.amount / self.shares if self.shares > 0 else 0.0


@dataclass(frozen=True)
class CashOut:
    amount: float
    bet: Bet


class OrderExecutor:

    def __init__(self, clock: Clock = utc_now,
                 cash_out_fee: float = CASH_OUT_FEE,
                 max_slippage: float = DEFAULT_MAX_SLIPPAGE,
                 precision: float = SHARE_PRECISION):
        self.clock = clock
        self.cash_out_fee = cash_out_fee
        self.max_slippage = max_slippage
        self.precision = precision

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    def quote(self, market: Market, outcome_id: str,
              amount: float) -> Quote:
        """
        Run validation steps 1-4 and price the bet. Slippage is reported,
        not enforced.
        """
        if market.status != MarketStatus.OPEN:
            raise MarketNotOpen(
                f"market {market.id} is {market.status.value}",
                details={"market_id": market.id,
                         "status": market.status.value})
        if not is_betting_open(market, self.clock()):
            raise MarketClosed(
                f"market {market.id} closed at {market.closes_at.isoformat()}",
                details={"market_id": market.id,
                         "closes_at": market.closes_at.isoformat()})
        i = market.outcome_index(outcome_id)
        if i is None:
            raise InvalidOutcome(
                f"unknown outcome: {outcome_id}",
                details={"market_id": market.id, "outcome_id": outcome_id})

        q = market.quantities
        b = market.liquidity_parameter
        current_price = price(q, i, b)

        shares = 0.0
        if isinstance(amount, (int, float)) and math.isfinite(amount):
            shares = shares_to_receive(q, i, amount, b, self.precision)

        q_after = list(q)
        q_after[i] += shares
        new_price = price(q_after, i, b)
        if not shares > 0 or not math.isfinite(shares) \
                or not math.isfinite(new_price):
            raise InvalidAmount(
                f"bet amount {amount} buys no shares",
                details={"amount": amount})
        return Quote(
            outcome_id=outcome_id,
            amount=amount,
            shares=shares,
            current_price=current_price,
            new_price=new_price,
            slippage=((new_price - current_price) / current_price
                      if current_price > 0 else math.inf),
        )

    def place_bet(self, market: Market, user_id: str, outcome_id: str,
                  amount: float,
                  max_slippage: float | None = None) -> BetPlacement:
        """
        Buy shares of outcome_id with `amount` credits.

        The bet pays potential_payout (= shares) if the outcome wins. Odds
        at placement are the pre-trade price; the user's average price is
        worse by the trade's own impact.
        """
        if max_slippage is None:
            max_slippage = self.max_slippage

        try:
            quote = self.quote(market, outcome_id, amount)
            if not quote.slippage <= max_slippage:
                raise SlippageExceeded(
                    current_price=quote.current_price,
                    new_price=quote.new_price,
                    slippage=quote.slippage,
                    max_slippage=max_slippage,
                )
        except (MarketNotOpen, MarketClosed, InvalidOutcome,
                InvalidAmount, SlippageExceeded) as e:
            log.info("bet_rejected", market_id=market.id, user_id=user_id,
                     outcome_id=outcome_id, amount=amount, code=e.code)
            raise

        i = market.outcome_index(outcome_id)
        outcome = market.outcomes[i]
        now = self.clock()

        bet = Bet(
            id=new_id("bet"),
            market_id=market.id,
            user_id=user_id,
            outcome_id=outcome_id,
            outcome_label=outcome.label,
            amount=amount,
            odds_at_placement=price_to_decimal_odds(
                clamp_probability(quote.current_price)),
            implied_probability_at_placement=quote.current_price,
            potential_payout=quote.shares,
            placed_at=now,
        )

        q_after = market.quantities
        q_after[i] += quote.shares
        updated = reprice(market, q_after)
        updated = replace(updated,
                          total_volume=market.total_volume + amount)

        log.info("bet_placed", market_id=market.id, bet_id=bet.id,
                 user_id=user_id, outcome_id=outcome_id, amount=amount,
                 shares=quote.shares, price=quote.current_price,
                 new_price=quote.new_price)
        return BetPlacement(bet=bet, market=updated)

    # ------------------------------------------------------------------
    # Cash-out
    # ------------------------------------------------------------------

    def calculate_cash_out_value(self, market: Market, bet: Bet) -> float:
        """
        Marked-to-market value of an active bet, net of the cash-out fee.

        shares * current price * (1 - fee), rounded to cents, floored at 0.
        Zero when the bet is not active or betting on the market has
        stopped (settled, voided, or past closes_at).
        """
        if not bet.active or not is_betting_open(market, self.clock()):
            return 0.0
        i = market.outcome_index(bet.outcome_id)
        if i is None:
            return 0.0
        current_price = price(market.quantities, i,
                              market.liquidity_parameter)
        value = bet.potential_payout * current_price * (1 - self.cash_out_fee)
        return max(0.0, round_cents(value))

    def execute_cash_out(self, market: Market, bet: Bet) -> CashOut:
        """
        Close an active bet at its cash-out value.

        Returns the amount to credit and the bet in CASHED_OUT state. The
        market snapshot is unchanged: the shares stay in the book.
        """
        if not bet.active:
            raise BetNotActive(
                f"bet {bet.id} is {bet.status.value}",
                details={"bet_id": bet.id, "status": bet.status.value})
        if market.status != MarketStatus.OPEN:
            raise MarketNotOpen(
                f"market {market.id} is {market.status.value}",
                details={"market_id": market.id,
                         "status": market.status.value})
        if not is_betting_open(market, self.clock()):
            raise MarketClosed(
                f"market {market.id} closed at {market.closes_at.isoformat()}",
                details={"market_id": market.id,
                         "closes_at": market.closes_at.isoformat()})

        amount = self.calculate_cash_out_value(market, bet)
        if amount <= 0:
            raise ZeroValue(f"cash out value of bet {bet.id} is zero",
                            details={"bet_id": bet.id})

        now = self.clock()
        closed = bet.close(
            BetStatus.CASHED_OUT,
            settled_amount=amount,
            profit_loss=amount - bet.amount,
            at=now,
            cashed_out_amount=amount,
            cashed_out_at=now,
        )
        log.info("cash_out", market_id=market.id, bet_id=bet.id,
                 user_id=bet.user_id, amount=amount)
        return CashOut(amount=amount, bet=closed)
