"""
Market lifecycle. Creation, repricing and state transitions.

    OPEN ──(now >= closes_at)──> CLOSED ──> SETTLED | VOIDED
      └───────────────────────────────────> SETTLED | VOIDED

CLOSED is derived from the clock, never stored. Anything asking "can
this market take bets" must check status == OPEN and now < closes_at.
SETTLED and VOIDED are terminal.

Nothing here enforces single-writer access to a market. Callers that run
concurrent requests must serialize writers per market (see
amm.service.BettingService) or two trades read the same quantities and one
is lost.
"""

import math
from dataclasses import replace
from datetime import datetime
from typing import Optional, Sequence

from amm.errors import AlreadyTerminal, InvalidOutcome
from amm.lmsr import prices, quantities_for_prices
from amm.models import (
    Market, MarketStatus, MarketType, Outcome,
    new_id, utc_now,
)
from amm.odds import clamp_probability, price_to_decimal_odds


PROBABILITY_TOLERANCE = 1e-6


# ---------------------------------------------------------------------------
# Derived state
# ---------------------------------------------------------------------------

def reprice(market: Market, quantities: Sequence[float]) -> Market:
    """
    New snapshot with every outcome's quantity, odds and probability
    recomputed from the full quantity vector.
    """
    p = prices(quantities, market.liquidity_parameter)
    outcomes = tuple(
        replace(o, total_volume=q, implied_probability=pi,
                odds=price_to_decimal_odds(clamp_probability(pi)))
        for o, q, pi in zip(market.outcomes, quantities, p)
    )
    return replace(market, outcomes=outcomes)


def effective_status(market: Market, now: datetime) -> MarketStatus:
    if market.status == MarketStatus.OPEN and now >= market.closes_at:
        return MarketStatus.CLOSED
    return market.status


def is_betting_open(market: Market, now: datetime) -> bool:
    return market.status == MarketStatus.OPEN and now < market.closes_at


def ensure_not_terminal(market: Market) -> None:
    if market.status.terminal:
        raise AlreadyTerminal(
            f"market {market.id} is {market.status.value}",
            details={"market_id": market.id, "status": market.status.value})


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def create_market(title: str,
                  outcomes: Sequence[Outcome],
                  liquidity_parameter: float,
                  closes_at: datetime,
                  probabilities: Optional[Sequence[float]] = None,
                  opens_at: Optional[datetime] = None,
                  seed_quantities: bool = False,
                  market_id: Optional[str] = None,
                  **fields) -> Market:
    """
    Build an OPEN market.

    probabilities is the opening line from a weight supplier (projections,
    standings, equal weighting; see amm.templates). It must have one entry
    per outcome and sum to 1. By default every quantity starts at 0, so
    the book opens at equal prices and the opening line is kept on each
    outcome as opening_probability. With seed_quantities=True the
    quantities are instead set so the book opens at the supplied prices.

    Raises ValueError on malformed input: this is a programming error in
    the caller, not a betting-time condition.
    """
    if not liquidity_parameter > 0 or math.isinf(liquidity_parameter):
        raise ValueError(
            f"liquidity parameter must be positive, got {liquidity_parameter}")
    n = len(outcomes)
    if n < 2:
        raise ValueError(f"market needs at least 2 outcomes, got {n}")
    ids = [o.id for o in outcomes]
    if len(set(ids)) != n:
        raise ValueError(f"duplicate outcome ids: {ids}")

    if probabilities is None:
        probabilities = [1.0 / n] * n
    if len(probabilities) != n:
        raise ValueError(
            f"expected {n} probabilities, got {len(probabilities)}")
    if any(not 0 < p < 1 for p in probabilities):
        raise ValueError(f"probabilities must be in (0, 1): {probabilities}")
    if abs(sum(probabilities) - 1) > PROBABILITY_TOLERANCE:
        raise ValueError(
            f"probabilities must sum to 1, got {sum(probabilities)}")

    if seed_quantities:
        quantities = quantities_for_prices(probabilities, liquidity_parameter)
    else:
        quantities = [0.0] * n

    now = utc_now()
    market = Market(
        id=market_id or new_id("mkt"),
        title=title,
        outcomes=tuple(
            replace(o, opening_probability=p)
            for o, p in zip(outcomes, probabilities)
        ),
        liquidity_parameter=liquidity_parameter,
        total_liquidity=liquidity_parameter * n,
        opens_at=opens_at or now,
        closes_at=closes_at,
        created_at=now,
        **fields,
    )
    return reprice(market, quantities)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def mark_settled(market: Market, winning_outcome_id: str,
                 now: datetime) -> Market:
    """
    OPEN/CLOSED → SETTLED. An unknown winning outcome is rejected,
    never guessed.
    """
    ensure_not_terminal(market)
    if market.outcome_index(winning_outcome_id) is None:
        raise InvalidOutcome(
            f"unknown outcome: {winning_outcome_id}",
            details={"market_id": market.id,
                     "outcome_id": winning_outcome_id,
                     "outcomes": market.outcome_ids})
    return replace(
        market,
        status=MarketStatus.SETTLED,
        winning_outcome_id=winning_outcome_id,
        settlement_value=1.0,
        settled_at=now,
    )


def mark_voided(market: Market, reason: str, now: datetime) -> Market:
    """OPEN/CLOSED → VOIDED. Allowed whether or not betting has closed."""
    ensure_not_terminal(market)
    return replace(
        market,
        status=MarketStatus.VOIDED,
        settlement_notes=reason,
        settled_at=now,
    )


def market_type_of(value: str) -> MarketType:
    try:
        return MarketType(value)
    except ValueError:
        raise ValueError(f"unknown market type: {value}") from None
