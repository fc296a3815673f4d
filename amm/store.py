"""
Key-value store for market and bet snapshots.

Markets carry a version number. put_market(market, expected_version)
refuses a write whose caller read an older version, so a writer that
slipped past the per-market lock cannot silently overwrite a newer trade.
"""

from amm.errors import BetNotFound, MarketNotFound, StaleWrite
from amm.models import Bet, Market


class MarketStore:

    def __init__(self):
        self.markets: dict[str, Market] = {}
        self.versions: dict[str, int] = {}
        self.bets: dict[str, Bet] = {}

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    def get_market(self, market_id: str) -> tuple[Market, int]:
        """Returns (market, version)."""
        market = self.markets.get(market_id)
        if market is None:
            raise MarketNotFound(f"market {market_id} not found",
                                 details={"market_id": market_id})
        return market, self.versions[market_id]

    def add_market(self, market: Market) -> None:
        if market.id in self.markets:
            raise ValueError(f"market {market.id} already exists")
        self.markets[market.id] = market
        self.versions[market.id] = 0

    def put_market(self, market: Market, expected_version: int) -> int:
        """Replace a market snapshot. Returns the new version."""
        current = self.versions.get(market.id)
        if current is None:
            raise MarketNotFound(f"market {market.id} not found",
                                 details={"market_id": market.id})
        if current != expected_version:
            raise StaleWrite(
                f"market {market.id} changed: version {current}, "
                f"expected {expected_version}",
                details={"market_id": market.id, "version": current,
                         "expected_version": expected_version})
        self.markets[market.id] = market
        self.versions[market.id] = current + 1
        return current + 1

    def list_markets(self) -> list[Market]:
        return list(self.markets.values())

    # ------------------------------------------------------------------
    # Bets
    # ------------------------------------------------------------------

    def get_bet(self, bet_id: str) -> Bet:
        bet = self.bets.get(bet_id)
        if bet is None:
            raise BetNotFound(f"bet {bet_id} not found",
                              details={"bet_id": bet_id})
        return bet

    def put_bet(self, bet: Bet) -> None:
        self.bets[bet.id] = bet

    def put_bets(self, bets: list[Bet]) -> None:
        for bet in bets:
            self.bets[bet.id] = bet

    def bets_for_market(self, market_id: str) -> list[Bet]:
        return [b for b in self.bets.values() if b.market_id == market_id]
