"""
Order executor tests: bet placement, validation order, slippage, cash-out.
"""

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from amm.errors import (
    BetNotActive, InvalidAmount, InvalidOutcome, MarketClosed,
    MarketNotOpen, SlippageExceeded, ZeroValue,
)
from amm.executor import OrderExecutor
from amm.lifecycle import create_market, mark_settled
from amm.lmsr import price
from amm.models import Bet, BetStatus, MarketStatus, Outcome
from amm.odds import round_cents


NOW = datetime(2026, 9, 13, 17, 0, tzinfo=timezone.utc)


def fresh_market(b=100.0, n=2, closes_in=timedelta(days=1)):
    return create_market(
        title="Test market",
        outcomes=[Outcome(id=f"o{i}", label=f"Outcome {i}") for i in range(n)],
        liquidity_parameter=b,
        closes_at=NOW + closes_in,
    )


def executor(at=NOW, **kwargs):
    # Most cases move a b=100 book well past the 5% default
    kwargs.setdefault("max_slippage", 1.0)
    return OrderExecutor(clock=lambda: at, **kwargs)


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------

class TestPlaceBet:

    def test_successful_bet(self):
        market = fresh_market()
        result = executor().place_bet(market, "u1", "o0", 10)
        bet = result.bet

        assert bet.status == BetStatus.ACTIVE
        assert bet.market_id == market.id
        assert bet.user_id == "u1"
        assert bet.outcome_label == "Outcome 0"
        assert bet.amount == 10
        assert bet.odds_at_placement == 2.0
        assert bet.implied_probability_at_placement == 0.5
        assert bet.potential_payout == pytest.approx(
            100 * math.log(2 * math.exp(0.1) - 1), abs=0.01)
        assert bet.placed_at == NOW

    def test_every_outcome_repriced(self):
        market = fresh_market(n=3)
        updated = executor().place_bet(market, "u1", "o1", 20).market

        p = [o.implied_probability for o in updated.outcomes]
        assert p[1] > 1 / 3
        assert p[0] < 1 / 3 and p[2] < 1 / 3
        assert p[0] == pytest.approx(p[2])
        assert abs(sum(p) - 1) < 1e-9
        assert updated.outcomes[0].odds > 3.0
        assert updated.total_volume == 20
        assert updated.quantities[1] > 0
        assert updated.quantities[0] == updated.quantities[2] == 0

    def test_input_snapshot_untouched(self):
        market = fresh_market()
        executor().place_bet(market, "u1", "o0", 10)
        assert market.quantities == [0.0, 0.0]
        assert market.total_volume == 0

    def test_volume_accumulates(self):
        ex = executor()
        m = fresh_market()
        for _ in range(3):
            m = ex.place_bet(m, "u1", "o0", 5).market
        assert m.total_volume == 15

    def test_later_bettor_gets_fewer_shares(self):
        ex = executor()
        m = fresh_market()
        first = ex.place_bet(m, "u1", "o0", 20)
        second = ex.place_bet(first.market, "u2", "o0", 20)
        assert second.bet.potential_payout < first.bet.potential_payout
        assert second.bet.implied_probability_at_placement > 0.5

    def test_quote_matches_placement(self):
        ex = executor()
        m = fresh_market()
        q = ex.quote(m, "o0", 10)
        placed = ex.place_bet(m, "u1", "o0", 10)
        assert q.shares == placed.bet.potential_payout
        assert q.current_price == 0.5
        assert q.new_price == pytest.approx(
            placed.market.outcomes[0].implied_probability)
        assert q.average_price == pytest.approx(10 / q.shares)


# ---------------------------------------------------------------------------
# Validation order
# ---------------------------------------------------------------------------

class TestValidation:

    def test_market_not_open(self):
        settled = mark_settled(fresh_market(), "o0", NOW)
        with pytest.raises(MarketNotOpen):
            executor().place_bet(settled, "u1", "o0", 10)

    def test_status_checked_before_window(self):
        m = mark_settled(fresh_market(closes_in=timedelta(hours=-1)),
                         "o0", NOW)
        with pytest.raises(MarketNotOpen):
            executor().place_bet(m, "u1", "nope", -1)

    def test_market_closed(self):
        m = fresh_market()
        with pytest.raises(MarketClosed):
            executor(at=m.closes_at).place_bet(m, "u1", "o0", 10)

    def test_window_checked_before_outcome(self):
        m = fresh_market(closes_in=timedelta(seconds=-1))
        with pytest.raises(MarketClosed):
            executor().place_bet(m, "u1", "nope", 10)

    def test_invalid_outcome(self):
        with pytest.raises(InvalidOutcome) as exc:
            executor().place_bet(fresh_market(), "u1", "nope", 10)
        assert exc.value.details["outcome_id"] == "nope"

    def test_outcome_checked_before_amount(self):
        with pytest.raises(InvalidOutcome):
            executor().place_bet(fresh_market(), "u1", "nope", -10)

    @pytest.mark.parametrize("amount", [0, -5, float("nan"), float("inf")])
    def test_invalid_amount(self, amount):
        with pytest.raises(InvalidAmount):
            executor().place_bet(fresh_market(), "u1", "o0", amount)

    def test_overflowing_amount_rejected(self):
        """A stake near the float limit cannot be priced and buys nothing."""
        ex = executor()
        with pytest.raises(InvalidAmount):
            ex.quote(fresh_market(), "o0", 1e307)
        with pytest.raises(InvalidAmount):
            ex.place_bet(fresh_market(), "u1", "o0", 1e307)

    def test_huge_finite_amount_hits_slippage(self):
        with pytest.raises(SlippageExceeded):
            executor().place_bet(fresh_market(), "u1", "o0", 1e300,
                                 max_slippage=0.05)


# ---------------------------------------------------------------------------
# Slippage
# ---------------------------------------------------------------------------

class TestSlippage:

    def test_huge_bet_rejected_whole(self):
        """$100,000 against b=100 would push the price to ~1."""
        market = fresh_market(b=100)
        with pytest.raises(SlippageExceeded) as exc:
            executor().place_bet(market, "u1", "o0", 100_000,
                                 max_slippage=0.05)
        e = exc.value
        assert e.current_price == 0.5
        assert e.new_price > 0.99
        assert e.slippage > 0.05
        assert e.max_slippage == 0.05
        assert set(e.details) == {
            "current_price", "new_price", "slippage", "max_slippage"}
        assert e.code == "slippage_exceeded"
        assert "exceeds maximum (5.0%)" in e.message

    def test_small_bet_within_limit(self):
        result = executor(max_slippage=0.05).place_bet(
            fresh_market(b=100), "u1", "o0", 5)
        p = result.market.outcomes[0].implied_probability
        assert (p - 0.5) / 0.5 <= 0.05

    def test_zero_tolerance_rejects_any_bet(self):
        with pytest.raises(SlippageExceeded):
            executor().place_bet(fresh_market(), "u1", "o0", 1,
                                 max_slippage=0)

    def test_executor_default_applies(self):
        strict = executor(max_slippage=0.001)
        with pytest.raises(SlippageExceeded):
            strict.place_bet(fresh_market(), "u1", "o0", 5)
        # Explicit argument overrides the default
        strict.place_bet(fresh_market(), "u1", "o0", 5, max_slippage=0.5)


# ---------------------------------------------------------------------------
# Cash-out
# ---------------------------------------------------------------------------

def placed(ex, amount=20, outcome="o0"):
    r = ex.place_bet(fresh_market(), "u1", outcome, amount)
    return r.market, r.bet


class TestCashOut:

    def test_value_formula(self):
        ex = executor()
        market, bet = placed(ex)
        p = price(market.quantities, 0, market.liquidity_parameter)
        expected = round_cents(bet.potential_payout * p * 0.98)
        assert ex.calculate_cash_out_value(market, bet) == expected

    def test_value_moves_with_market(self):
        ex = executor()
        market, bet = placed(ex)
        before = ex.calculate_cash_out_value(market, bet)
        up = ex.place_bet(market, "u2", "o0", 20).market
        down = ex.place_bet(market, "u2", "o1", 20).market
        assert ex.calculate_cash_out_value(up, bet) > before
        assert ex.calculate_cash_out_value(down, bet) < before

    def test_fee_is_configurable(self):
        market, bet = placed(executor())
        free = executor(cash_out_fee=0.0)
        p = price(market.quantities, 0, market.liquidity_parameter)
        assert free.calculate_cash_out_value(market, bet) == round_cents(
            bet.potential_payout * p)

    def test_zero_for_inactive_bet_or_closed_market(self):
        ex = executor()
        market, bet = placed(ex)
        lost = replace(bet, status=BetStatus.LOST)
        assert ex.calculate_cash_out_value(market, lost) == 0
        settled = mark_settled(market, "o0", NOW)
        assert ex.calculate_cash_out_value(settled, bet) == 0

    def test_no_cash_out_after_close(self):
        """Past closes_at the price is frozen; holders cannot exit on it."""
        market = fresh_market(closes_in=timedelta(hours=1))
        placement = executor().place_bet(market, "u1", "o0", 50)
        market, bet = placement.market, placement.bet

        later = executor(at=NOW + timedelta(hours=3))
        assert executor().calculate_cash_out_value(market, bet) > 0
        assert later.calculate_cash_out_value(market, bet) == 0
        with pytest.raises(MarketClosed):
            later.execute_cash_out(market, bet)

    def test_cents_round_half_up(self):
        market = fresh_market()
        bet = Bet(
            id="bet_half", market_id=market.id, user_id="u1",
            outcome_id="o0", outcome_label="Outcome 0", amount=0.1,
            odds_at_placement=2.0, implied_probability_at_placement=0.5,
            potential_payout=0.25,
        )
        # 0.25 shares at 0.5 with no fee is exactly 0.125
        assert executor(cash_out_fee=0.0).calculate_cash_out_value(
            market, bet) == 0.13

    def test_execute(self):
        ex = executor()
        market, bet = placed(ex)
        value = ex.calculate_cash_out_value(market, bet)

        result = ex.execute_cash_out(market, bet)
        assert result.amount == value
        assert result.bet.status == BetStatus.CASHED_OUT
        assert result.bet.cashed_out_amount == value
        assert result.bet.settled_amount == value
        assert result.bet.profit_loss == pytest.approx(value - bet.amount)
        assert result.bet.cashed_out_at == NOW
        assert bet.status == BetStatus.ACTIVE

    def test_execute_rejects_inactive_bet(self):
        ex = executor()
        market, bet = placed(ex)
        cashed = ex.execute_cash_out(market, bet).bet
        with pytest.raises(BetNotActive):
            ex.execute_cash_out(market, cashed)

    def test_execute_rejects_settled_market(self):
        ex = executor()
        market, bet = placed(ex)
        settled = mark_settled(market, "o1", NOW)
        assert settled.status == MarketStatus.SETTLED
        with pytest.raises(MarketNotOpen):
            ex.execute_cash_out(settled, bet)

    def test_execute_rejects_zero_value(self):
        ex = executor()
        market = fresh_market()
        dust = Bet(
            id="bet_dust", market_id=market.id, user_id="u1",
            outcome_id="o0", outcome_label="Outcome 0", amount=0.001,
            odds_at_placement=2.0, implied_probability_at_placement=0.5,
            potential_payout=0.002,
        )
        assert ex.calculate_cash_out_value(market, dust) == 0
        with pytest.raises(ZeroValue):
            ex.execute_cash_out(market, dust)
