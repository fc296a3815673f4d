"""
FastAPI application. HTTP front end for the fantasy market maker.

Markets: create, list, detail, quote.
Bets: place, list per market, cash-out value, cash out.
Settlement: settle, void.
Accounts: deposit, balance.

Identity and auth live in the gateway in front of this service; user_id
is taken from the request as given.
"""

from contextlib import asynccontextmanager
from datetime import timezone

from fastapi import FastAPI

from amm.api_errors import APIError, api_error_handler, translate_engine_error
from amm.api_models import (
    CreateMarketRequest, MarketResponse, OutcomeResponse,
    QuoteRequest, QuoteResponse,
    PlaceBetRequest, BetResponse,
    CashOutValueResponse, CashOutResponse,
    SettleRequest, VoidRequest, SettlementResponse,
    DepositRequest, AccountResponse, HealthResponse,
)
from amm.config import configure_logging, get_settings
from amm.errors import MarketError
from amm.ledger import InsufficientBalance, Ledger
from amm.lifecycle import create_market, effective_status, market_type_of
from amm.models import Bet, Market, Outcome
from amm.odds import clamp_probability, price_to_american_odds
from amm.service import BettingService
from amm.settlement import Settlement
from amm.store import MarketStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    app.state.settings = settings
    app.state.service = BettingService(MarketStore(), Ledger(), settings)
    yield


app = FastAPI(title="Fantasy Market Maker API", version="0.1.0",
              lifespan=lifespan)
app.add_exception_handler(APIError, api_error_handler)


def _service() -> BettingService:
    return app.state.service


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

def _market_response(m: Market) -> MarketResponse:
    svc = _service()
    return MarketResponse(
        market_id=m.id,
        title=m.title,
        description=m.description,
        market_type=m.market_type.value,
        status=effective_status(m, svc.clock()).value,
        outcomes=[
            OutcomeResponse(
                id=o.id,
                label=o.label,
                description=o.description,
                quantity=o.total_volume,
                odds=o.odds,
                american_odds=price_to_american_odds(
                    clamp_probability(o.implied_probability)),
                implied_probability=o.implied_probability,
                opening_probability=o.opening_probability,
            )
            for o in m.outcomes
        ],
        liquidity_parameter=m.liquidity_parameter,
        total_liquidity=m.total_liquidity,
        total_volume=m.total_volume,
        opens_at=m.opens_at,
        closes_at=m.closes_at,
        winning_outcome_id=m.winning_outcome_id,
        settlement_value=m.settlement_value,
        settlement_notes=m.settlement_notes,
        settled_at=m.settled_at,
        created_at=m.created_at,
        metadata=m.metadata,
    )


def _bet_response(b: Bet) -> BetResponse:
    return BetResponse(
        bet_id=b.id,
        market_id=b.market_id,
        user_id=b.user_id,
        outcome_id=b.outcome_id,
        outcome_label=b.outcome_label,
        amount=b.amount,
        odds_at_placement=b.odds_at_placement,
        implied_probability_at_placement=b.implied_probability_at_placement,
        potential_payout=b.potential_payout,
        status=b.status.value,
        placed_at=b.placed_at,
        settled_amount=b.settled_amount,
        profit_loss=b.profit_loss,
        settled_at=b.settled_at,
    )


def _settlement_response(s: Settlement) -> SettlementResponse:
    return SettlementResponse(
        market_id=s.market.id,
        status=s.market.status.value,
        bets_closed=len(s.payouts),
        total_paid=s.total_paid,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/v1/health")
async def health() -> HealthResponse:
    store = _service().store
    return HealthResponse(status="ok", markets=len(store.markets),
                          bets=len(store.bets))


# ---------------------------------------------------------------------------
# Markets
# ---------------------------------------------------------------------------

@app.post("/v1/markets")
async def post_market(req: CreateMarketRequest) -> MarketResponse:
    """Create a market. Probabilities default to an even split."""
    svc = _service()
    b = req.liquidity_parameter
    if b is None:
        b = svc.settings.default_liquidity
    closes_at = req.closes_at
    if closes_at.tzinfo is None:
        closes_at = closes_at.replace(tzinfo=timezone.utc)

    try:
        market = create_market(
            title=req.title,
            outcomes=[Outcome(id=o.id, label=o.label,
                              description=o.description)
                      for o in req.outcomes],
            liquidity_parameter=b,
            closes_at=closes_at,
            probabilities=req.probabilities,
            seed_quantities=req.seed_quantities,
            market_type=market_type_of(req.market_type),
            description=req.description,
            metadata=req.metadata,
        )
    except ValueError as e:
        raise APIError(400, "invalid_market", str(e))

    svc.add_market(market)
    return _market_response(market)


@app.get("/v1/markets")
async def list_markets(status: str | None = None) -> list[MarketResponse]:
    """List markets. Optional filter on (effective) status."""
    result = [_market_response(m) for m in _service().store.list_markets()]
    if status is not None:
        result = [m for m in result if m.status == status]
    return result


@app.get("/v1/markets/{market_id}")
async def get_market(market_id: str) -> MarketResponse:
    try:
        market = _service().get_market(market_id)
    except MarketError as e:
        raise translate_engine_error(e)
    return _market_response(market)


@app.post("/v1/markets/{market_id}/quote")
async def quote(market_id: str, req: QuoteRequest) -> QuoteResponse:
    """Price a bet without placing it."""
    try:
        q = _service().quote(market_id, req.outcome_id, req.amount)
    except MarketError as e:
        raise translate_engine_error(e)
    return QuoteResponse(
        outcome_id=q.outcome_id,
        amount=q.amount,
        shares=q.shares,
        average_price=q.average_price,
        current_price=q.current_price,
        new_price=q.new_price,
        slippage=q.slippage,
    )


# ---------------------------------------------------------------------------
# Bets
# ---------------------------------------------------------------------------

@app.post("/v1/markets/{market_id}/bets")
async def place_bet(market_id: str, req: PlaceBetRequest) -> BetResponse:
    try:
        placement = _service().place_bet(
            market_id, req.user_id, req.outcome_id, req.amount,
            max_slippage=req.max_slippage)
    except (MarketError, InsufficientBalance) as e:
        raise translate_engine_error(e)
    return _bet_response(placement.bet)


@app.get("/v1/markets/{market_id}/bets")
async def list_bets(market_id: str) -> list[BetResponse]:
    try:
        bets = _service().bets_for_market(market_id)
    except MarketError as e:
        raise translate_engine_error(e)
    return [_bet_response(b) for b in bets]


@app.get("/v1/bets/{bet_id}/cash-out")
async def get_cash_out_value(bet_id: str) -> CashOutValueResponse:
    try:
        value = _service().cash_out_value(bet_id)
    except MarketError as e:
        raise translate_engine_error(e)
    return CashOutValueResponse(bet_id=bet_id, value=value)


@app.post("/v1/bets/{bet_id}/cash-out")
async def cash_out(bet_id: str) -> CashOutResponse:
    try:
        result = _service().cash_out(bet_id)
    except MarketError as e:
        raise translate_engine_error(e)
    return CashOutResponse(bet_id=bet_id, amount=result.amount,
                           status=result.bet.status.value)


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------

@app.post("/v1/markets/{market_id}/settle")
async def settle(market_id: str, req: SettleRequest) -> SettlementResponse:
    try:
        result = _service().settle(market_id, req.winning_outcome_id)
    except MarketError as e:
        raise translate_engine_error(e)
    return _settlement_response(result)


@app.post("/v1/markets/{market_id}/void")
async def void(market_id: str, req: VoidRequest) -> SettlementResponse:
    try:
        result = _service().void(market_id, req.reason)
    except MarketError as e:
        raise translate_engine_error(e)
    return _settlement_response(result)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@app.get("/v1/accounts/{user_id}")
async def get_account(user_id: str) -> AccountResponse:
    balance = _service().open_account(user_id)
    return AccountResponse(user_id=user_id, balance=balance)


@app.post("/v1/accounts/{user_id}/deposit")
async def deposit(user_id: str, req: DepositRequest) -> AccountResponse:
    svc = _service()
    svc.open_account(user_id)
    svc.ledger.deposit(user_id, req.amount)
    return AccountResponse(user_id=user_id, balance=svc.ledger.balance(user_id))
