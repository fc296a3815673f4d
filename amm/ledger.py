"""
Ledger. User balances and the append-only transaction log.

The pricing core never touches balances. The service layer calls the
ledger after a core operation succeeds:

    place bet   → debit stake           reason "bet_stake"
    cash out    → credit cash-out value reason "cash_out"
    settle      → credit payout         reason "payout"   (winners only)
    void        → credit stake          reason "refund"

Invariant: account.balance == sum(tx.delta for tx of that account)

An in-memory reference implementation; a real deployment puts a database
or external wallet behind the same three calls.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from amm.models import new_id, utc_now


class InsufficientBalance(Exception):
    code = "insufficient_balance"


@dataclass
class Account:
    user_id: str
    balance: float = 0.0
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Transaction:
    """
    delta > 0 credits the account, delta < 0 debits it.
    """
    id: str
    user_id: str
    delta: float
    reason: str
    market_id: Optional[str] = None
    bet_id: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)


class Ledger:

    def __init__(self):
        self.accounts: dict[str, Account] = {}
        self.transactions: list[Transaction] = []

    def account(self, user_id: str) -> Account:
        """Get an account, opening an empty one on first use."""
        acc = self.accounts.get(user_id)
        if acc is None:
            acc = Account(user_id=user_id)
            self.accounts[user_id] = acc
        return acc

    def balance(self, user_id: str) -> float:
        return self.account(user_id).balance

    def deposit(self, user_id: str, amount: float) -> Transaction:
        """Credits entering from outside. The only way money enters."""
        if not amount > 0:
            raise ValueError(f"deposit must be positive, got {amount}")
        return self._post(user_id, amount, "deposit")

    def debit(self, user_id: str, amount: float, reason: str,
              market_id: Optional[str] = None,
              bet_id: Optional[str] = None) -> Transaction:
        """Take credits. Raises InsufficientBalance, leaving no trace."""
        acc = self.account(user_id)
        if acc.balance < amount:
            raise InsufficientBalance(
                f"account {user_id}: need {amount}, have {acc.balance}")
        return self._post(user_id, -amount, reason, market_id, bet_id)

    def credit(self, user_id: str, amount: float, reason: str,
               market_id: Optional[str] = None,
               bet_id: Optional[str] = None) -> Transaction:
        return self._post(user_id, amount, reason, market_id, bet_id)

    def total_deposited(self) -> float:
        return sum(tx.delta for tx in self.transactions
                   if tx.reason == "deposit")

    def history(self, user_id: str) -> list[Transaction]:
        return [tx for tx in self.transactions if tx.user_id == user_id]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _post(self, user_id: str, delta: float, reason: str,
              market_id: Optional[str] = None,
              bet_id: Optional[str] = None) -> Transaction:
        acc = self.account(user_id)
        acc.balance += delta
        tx = Transaction(
            id=new_id("tx"),
            user_id=user_id,
            delta=delta,
            reason=reason,
            market_id=market_id,
            bet_id=bet_id,
        )
        self.transactions.append(tx)
        return tx
