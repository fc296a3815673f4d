"""
Betting service. The request handler around the pure engine.

Every write follows: lock market → read snapshot → run engine → ledger →
write snapshot → unlock.

The engine assumes at most one writer per market at a time and does not
check it. This service provides that guarantee with one lock per market
id. It also writes with the version it read, so a writer that bypasses
the lock fails with StaleWrite instead of losing a trade.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from amm.config import Settings
from amm.errors import StaleWrite
from amm.executor import BetPlacement, CashOut, OrderExecutor, Quote
from amm.ledger import Ledger
from amm.models import Bet, Clock, Market, utc_now
from amm.settlement import Settlement, SettlementEngine
from amm.store import MarketStore


log = structlog.get_logger(__name__)


class BettingService:

    def __init__(self, store: MarketStore, ledger: Ledger,
                 settings: Optional[Settings] = None,
                 clock: Clock = utc_now):
        self.store = store
        self.ledger = ledger
        self.settings = settings or Settings()
        self.clock = clock
        self.executor = OrderExecutor(
            clock=clock,
            cash_out_fee=self.settings.cash_out_fee,
            max_slippage=self.settings.max_slippage,
            precision=self.settings.share_precision,
        )
        self.settlement = SettlementEngine(clock=clock)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def market_lock(self, market_id: str) -> Iterator[None]:
        """Exclusive access to one market. Other markets are unaffected."""
        with self._locks_guard:
            lock = self._locks.setdefault(market_id, threading.Lock())
        with lock:
            yield

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    def add_market(self, market: Market) -> Market:
        self.store.add_market(market)
        log.info("market_created", market_id=market.id,
                 outcomes=market.outcome_ids,
                 b=market.liquidity_parameter)
        return market

    def get_market(self, market_id: str) -> Market:
        market, _ = self.store.get_market(market_id)
        return market

    def quote(self, market_id: str, outcome_id: str,
              amount: float) -> Quote:
        return self.executor.quote(self.get_market(market_id),
                                   outcome_id, amount)

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    def place_bet(self, market_id: str, user_id: str, outcome_id: str,
                  amount: float,
                  max_slippage: Optional[float] = None) -> BetPlacement:
        """
        Execute a bet and debit its stake. Nothing is stored if the engine
        rejects the bet or the user can't cover it.
        """
        with self.market_lock(market_id):
            market, version = self.store.get_market(market_id)
            placement = self.executor.place_bet(
                market, user_id, outcome_id, amount, max_slippage)
            bet = placement.bet

            self.ledger.debit(user_id, amount, "bet_stake",
                              market_id=market_id, bet_id=bet.id)
            try:
                self.store.put_market(placement.market, version)
            except StaleWrite:
                self.ledger.credit(user_id, amount, "bet_reversal",
                                   market_id=market_id, bet_id=bet.id)
                raise
            self.store.put_bet(bet)
        return placement

    def cash_out_value(self, bet_id: str) -> float:
        bet = self.store.get_bet(bet_id)
        market = self.get_market(bet.market_id)
        return self.executor.calculate_cash_out_value(market, bet)

    def cash_out(self, bet_id: str) -> CashOut:
        bet = self.store.get_bet(bet_id)
        with self.market_lock(bet.market_id):
            # Re-read both under the lock; either may have just settled.
            bet = self.store.get_bet(bet_id)
            market = self.get_market(bet.market_id)
            result = self.executor.execute_cash_out(market, bet)
            self.store.put_bet(result.bet)
            self.ledger.credit(bet.user_id, result.amount, "cash_out",
                               market_id=market.id, bet_id=bet.id)
        return result

    def bets_for_market(self, market_id: str) -> list[Bet]:
        self.store.get_market(market_id)
        return self.store.bets_for_market(market_id)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle(self, market_id: str, winning_outcome_id: str) -> Settlement:
        with self.market_lock(market_id):
            market, version = self.store.get_market(market_id)
            result = self.settlement.settle_market(
                market, winning_outcome_id,
                self.store.bets_for_market(market_id))
            self._commit(result, version, "payout")
        return result

    def void(self, market_id: str, reason: str) -> Settlement:
        with self.market_lock(market_id):
            market, version = self.store.get_market(market_id)
            result = self.settlement.void_market(
                market, self.store.bets_for_market(market_id), reason)
            self._commit(result, version, "refund")
        return result

    def _commit(self, result: Settlement, version: int, reason: str) -> None:
        self.store.put_market(result.market, version)
        self.store.put_bets(result.bets)
        by_id = {b.id: b for b in result.bets}
        for bet_id, amount in result.payouts.items():
            if amount > 0:
                self.ledger.credit(by_id[bet_id].user_id, amount, reason,
                                   market_id=result.market.id,
                                   bet_id=bet_id)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def open_account(self, user_id: str) -> float:
        """Open an account, granting initial credits on first sight."""
        is_new = user_id not in self.ledger.accounts
        acc = self.ledger.account(user_id)
        if is_new and self.settings.initial_credits > 0:
            self.ledger.deposit(user_id, self.settings.initial_credits)
        return acc.balance
