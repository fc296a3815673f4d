"""
Data models for fantasy prediction markets.

Two kinds of data live side by side on a market and must not be confused:
- Pricing state: the quantity vector, one float per outcome, read in
  outcome order. It is the only thing that moves prices.
- Derived and display fields: odds, implied probability, labels. These are
  recomputed from quantities on every mutation and never written directly.

All records are frozen. Operations return new snapshots via replace();
persisting them is the caller's job.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id(kind: str) -> str:
    """Opaque identifier, e.g. 'mkt_3f2a9c0d1e4b'."""
    return f"{kind}_{uuid.uuid4().hex[:12]}"


class MarketStatus(str, Enum):
    """
    OPEN, SETTLED and VOIDED are stored. CLOSED is never stored: an OPEN
    market past closes_at reports CLOSED through lifecycle.effective_status.
    """
    OPEN = "open"
    CLOSED = "closed"
    SETTLED = "settled"
    VOIDED = "voided"

    @property
    def terminal(self) -> bool:
        return self in (MarketStatus.SETTLED, MarketStatus.VOIDED)


class BetStatus(str, Enum):
    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
    REFUNDED = "refunded"
    CASHED_OUT = "cashed_out"


class MarketType(str, Enum):
    MATCHUP = "matchup"
    LEAGUE_WINNER = "league_winner"
    WEEKLY_HIGH_SCORE = "weekly_high_score"
    PLAYER_PROP = "player_prop"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Outcome:
    """
    One outcome of a market.

    total_volume is the LMSR quantity q_i in shares. odds (decimal) and
    implied_probability are derived from the whole quantity vector.
    opening_probability is the weight supplied at creation, kept for
    display only.
    """
    id: str
    label: str
    description: str = ""
    total_volume: float = 0.0
    odds: float = 0.0
    implied_probability: float = 0.0
    opening_probability: float = 0.0


@dataclass(frozen=True)
class Market:
    """
    A market snapshot.

    liquidity_parameter: LMSR b, > 0 for the market's whole lifetime
    total_liquidity: b * number of outcomes, reporting figure only
    total_volume: cumulative stake wagered
    """
    id: str
    title: str
    outcomes: tuple[Outcome, ...]
    liquidity_parameter: float
    total_liquidity: float
    opens_at: datetime
    closes_at: datetime
    total_volume: float = 0.0
    status: MarketStatus = MarketStatus.OPEN
    market_type: MarketType = MarketType.CUSTOM
    description: str = ""
    league_id: Optional[str] = None
    reference_type: Optional[str] = None   # "matchup", "player", "team", "league"
    reference_id: Optional[str] = None
    week: Optional[int] = None
    season: Optional[str] = None
    winning_outcome_id: Optional[str] = None
    settlement_value: Optional[float] = None
    settlement_notes: Optional[str] = None
    settled_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    metadata: dict = field(default_factory=dict)

    @property
    def quantities(self) -> list[float]:
        return [o.total_volume for o in self.outcomes]

    @property
    def outcome_ids(self) -> list[str]:
        return [o.id for o in self.outcomes]

    def outcome_index(self, outcome_id: str) -> Optional[int]:
        for i, o in enumerate(self.outcomes):
            if o.id == outcome_id:
                return i
        return None

    def outcome(self, outcome_id: str) -> Optional[Outcome]:
        i = self.outcome_index(outcome_id)
        return None if i is None else self.outcomes[i]


@dataclass(frozen=True)
class Bet:
    """
    A single bet. Owned by one user, references one market outcome.

    potential_payout is the number of shares bought: each pays 1 credit if
    the outcome wins. Leaves ACTIVE exactly once; after that only the
    settlement fields are ever filled in.
    """
    id: str
    market_id: str
    user_id: str
    outcome_id: str
    outcome_label: str
    amount: float
    odds_at_placement: float
    implied_probability_at_placement: float
    potential_payout: float
    status: BetStatus = BetStatus.ACTIVE
    placed_at: datetime = field(default_factory=utc_now)
    settled_amount: Optional[float] = None
    profit_loss: Optional[float] = None
    settled_at: Optional[datetime] = None
    cashed_out_amount: Optional[float] = None
    cashed_out_at: Optional[datetime] = None

    @property
    def active(self) -> bool:
        return self.status == BetStatus.ACTIVE

    def close(self, status: BetStatus, settled_amount: float,
              profit_loss: float, at: datetime, **extra) -> "Bet":
        return replace(self, status=status, settled_amount=settled_amount,
                       profit_loss=profit_loss, settled_at=at, **extra)
