"""
Pydantic request/response models for the API.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# --- Markets ---

class OutcomeIn(BaseModel):
    id: str
    label: str
    description: str = ""

class CreateMarketRequest(BaseModel):
    title: str
    outcomes: list[OutcomeIn]
    closes_at: datetime
    liquidity_parameter: float | None = None
    probabilities: list[float] | None = None
    seed_quantities: bool = False
    market_type: str = "custom"
    description: str = ""
    metadata: dict = {}

class OutcomeResponse(BaseModel):
    id: str
    label: str
    description: str
    quantity: float
    odds: float
    american_odds: int
    implied_probability: float
    opening_probability: float

class MarketResponse(BaseModel):
    market_id: str
    title: str
    description: str
    market_type: str
    status: str
    outcomes: list[OutcomeResponse]
    liquidity_parameter: float
    total_liquidity: float
    total_volume: float
    opens_at: datetime
    closes_at: datetime
    winning_outcome_id: str | None
    settlement_value: float | None
    settlement_notes: str | None
    settled_at: datetime | None
    created_at: datetime
    metadata: dict


# --- Betting ---

class QuoteRequest(BaseModel):
    outcome_id: str
    amount: float

class QuoteResponse(BaseModel):
    outcome_id: str
    amount: float
    shares: float
    average_price: float
    current_price: float
    new_price: float
    slippage: float

class PlaceBetRequest(BaseModel):
    user_id: str
    outcome_id: str
    amount: float
    max_slippage: float | None = Field(default=None, ge=0)

class BetResponse(BaseModel):
    bet_id: str
    market_id: str
    user_id: str
    outcome_id: str
    outcome_label: str
    amount: float
    odds_at_placement: float
    implied_probability_at_placement: float
    potential_payout: float
    status: str
    placed_at: datetime
    settled_amount: float | None
    profit_loss: float | None
    settled_at: datetime | None

class CashOutValueResponse(BaseModel):
    bet_id: str
    value: float

class CashOutResponse(BaseModel):
    bet_id: str
    amount: float
    status: str


# --- Settlement ---

class SettleRequest(BaseModel):
    winning_outcome_id: str

class VoidRequest(BaseModel):
    reason: str

class SettlementResponse(BaseModel):
    market_id: str
    status: str
    bets_closed: int
    total_paid: float


# --- Accounts ---

class DepositRequest(BaseModel):
    amount: float = Field(gt=0)

class AccountResponse(BaseModel):
    user_id: str
    balance: float

class HealthResponse(BaseModel):
    status: str
    markets: int
    bets: int
