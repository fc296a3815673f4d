"""
Business errors raised by the engine.

Every error carries a machine-readable code, a message and a details dict
with the numeric context (prices, slippage) a client needs to explain a
rejection. All of them are recoverable by the caller. Contract violations
by the calling layer (b <= 0, malformed outcome lists) raise ValueError
instead.
"""


class MarketError(Exception):
    """Base for caller-recoverable engine errors."""

    code = "market_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MarketNotOpen(MarketError):
    code = "market_not_open"


class MarketClosed(MarketError):
    code = "market_closed"


class InvalidOutcome(MarketError):
    code = "invalid_outcome"


class InvalidAmount(MarketError):
    code = "invalid_amount"


class SlippageExceeded(MarketError):
    code = "slippage_exceeded"

    def __init__(self, current_price: float, new_price: float,
                 slippage: float, max_slippage: float):
        super().__init__(
            f"price slippage ({slippage * 100:.1f}%) exceeds maximum "
            f"({max_slippage * 100:.1f}%)",
            details={
                "current_price": current_price,
                "new_price": new_price,
                "slippage": slippage,
                "max_slippage": max_slippage,
            },
        )
        self.current_price = current_price
        self.new_price = new_price
        self.slippage = slippage
        self.max_slippage = max_slippage


class ZeroValue(MarketError):
    code = "zero_value"


class AlreadyTerminal(MarketError):
    code = "already_terminal"


class BetNotActive(MarketError):
    code = "bet_not_active"


# Raised by the service layer around the store.

class MarketNotFound(MarketError):
    code = "market_not_found"


class BetNotFound(MarketError):
    code = "bet_not_found"


class StaleWrite(MarketError):
    code = "stale_write"
