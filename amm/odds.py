"""
Odds conversions between probability, decimal odds and American odds.

Pure and stateless. Converters expect 0 < p < 1; callers clamp with
clamp_probability first so prices pinned at 0 or 1 by extreme trading
never reach a division.
"""

import math


EPSILON = 1e-6


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def round_cents(x: float) -> float:
    """Round to 2 dp, halves up. 0.125 → 0.13, where round() gives 0.12."""
    return _round_half_up(x * 100) / 100


def clamp_probability(p: float, eps: float = EPSILON) -> float:
    """Clamp p into [eps, 1 - eps]."""
    return min(max(p, eps), 1.0 - eps)


def price_to_american_odds(p: float) -> int:
    """
    Favorites (p >= 0.5) get negative odds, underdogs positive.

    0.5 → -100, 0.75 → -300, 0.25 → +300.
    """
    if p >= 0.5:
        return _round_half_up(-100 * p / (1 - p))
    return _round_half_up(100 * (1 - p) / p)


def price_to_decimal_odds(p: float) -> float:
    """Decimal odds 1/p, rounded to 2 dp."""
    return _round_half_up(100 / p) / 100


def american_odds_to_price(odds: float) -> float:
    """Implied probability of American odds. +150 → 0.4, -200 → 0.6667."""
    if odds > 0:
        return 100 / (odds + 100)
    return abs(odds) / (abs(odds) + 100)


def decimal_odds_to_price(odds: float) -> float:
    return 1 / odds


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------

def format_odds(p: float, fmt: str = "american") -> str:
    """
    Render a price for display.

    american    → "+150" / "-200"
    decimal     → "2.50"
    probability → "40.0%"
    """
    if fmt == "american":
        american = price_to_american_odds(p)
        return f"+{american}" if american > 0 else f"{american}"
    if fmt == "decimal":
        return f"{price_to_decimal_odds(p):.2f}"
    if fmt == "probability":
        return f"{p * 100:.1f}%"
    raise ValueError(f"unknown odds format: {fmt}")


def odds_movement(current: float, previous: float) -> str:
    """'up', 'down' or 'stable' (moves under one cent of probability)."""
    diff = current - previous
    if abs(diff) < 0.01:
        return "stable"
    return "up" if diff > 0 else "down"
