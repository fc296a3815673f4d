"""
LMSR (Logarithmic Market Scoring Rule). Pure math, no state.

All functions take a quantity vector indexed by outcome position and a
liquidity parameter, and return floats. The caller (order executor,
settlement) handles state, rounding and persistence.

Notation:
    q: sequence of quantities sold per outcome, in outcome order
    b: liquidity parameter (higher = deeper book, max loss = b * ln(n))

Precondition: b > 0. Callers reject b <= 0 before calling; nothing here
re-validates it.
"""

import math
from typing import Sequence


# Bisection limits for shares_to_receive. The initial bracket
# [0, 100 * investment] is a heuristic, not a proven bound, so the upper
# end is doubled until it costs at least the investment.
SEARCH_UPPER_MULTIPLIER = 100.0
MAX_BRACKET_DOUBLINGS = 64
MAX_BISECTIONS = 200


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _shifted_exps(q: Sequence[float], b: float) -> tuple[float, list[float]]:
    """e^((q_i - max q) / b) for each outcome. Largest term is exactly 1."""
    m = max(q)
    return m, [math.exp((v - m) / b) for v in q]


def _bumped(q: Sequence[float], i: int, delta: float) -> list[float]:
    q_after = list(q)
    q_after[i] = q_after[i] + delta
    return q_after


# ---------------------------------------------------------------------------
# Core functions
# ---------------------------------------------------------------------------

def cost(q: Sequence[float], b: float) -> float:
    """
    Cost function: C(q) = b * ln(Σ e^(q_i / b))

    Evaluated as max q + b * ln(Σ e^((q_i - max q) / b)). Without the
    shift, e^(q_i / b) overflows once quantities reach a few hundred
    multiples of b. Trading costs are always C(after) - C(before).
    """
    m, exps = _shifted_exps(q, b)
    return m + b * math.log(sum(exps))


def price(q: Sequence[float], i: int, b: float) -> float:
    """Price (probability) of outcome i: softmax of q / b at index i."""
    _, exps = _shifted_exps(q, b)
    return exps[i] / sum(exps)


def prices(q: Sequence[float], b: float) -> list[float]:
    """
    Current prices for every outcome, in outcome order.

    p_i = e^(q_i / b) / Σ e^(q_j / b)

    One pass over the exponentials, so O(n) for the whole vector.
    """
    _, exps = _shifted_exps(q, b)
    total = sum(exps)
    return [v / total for v in exps]


def cost_to_buy(q: Sequence[float], i: int, shares: float,
                b: float) -> float:
    """
    Credits required to buy `shares` of outcome i.

    cost = C(q_after) - C(q_before)

    Non-negative for shares >= 0 and strictly increasing in shares.
    """
    return cost(_bumped(q, i, shares), b) - cost(q, b)


def proceeds_from_sale(q: Sequence[float], i: int, shares: float,
                       b: float) -> float:
    """
    Credits returned for selling `shares` of outcome i back to the AMM.

    proceeds = C(q_before) - C(q_after), with q_after[i] = q[i] - shares.
    Mirror of cost_to_buy: selling what was just bought returns its cost.
    """
    return cost(q, b) - cost(_bumped(q, i, -shares), b)


def shares_to_receive(q: Sequence[float], i: int, investment: float,
                      b: float, precision: float = 0.01) -> float:
    """
    Inverse of cost_to_buy. Given a credit budget, how many shares of
    outcome i can it buy?

    Bisection over shares. Returns the lower end of the final bracket,
    i.e. shares whose cost is strictly below the investment, so the
    buyer is never charged more than they put in.

    The first bracket is [0, 100 * investment]. When even the upper end
    costs less than the investment (tiny b, large budget) it is doubled
    until it doesn't, at most MAX_BRACKET_DOUBLINGS times. Bisection is
    capped at MAX_BISECTIONS steps; for precision=0.01 and a 10,000
    budget it finishes in about 27.

    Returns 0 when the bracket overflows to a non-finite share count or
    cost, which only happens for budgets near the float limit.
    """
    if not investment > 0:
        return 0.0

    low = 0.0
    high = investment * SEARCH_UPPER_MULTIPLIER
    for _ in range(MAX_BRACKET_DOUBLINGS):
        if not math.isfinite(high):
            return 0.0
        c = cost_to_buy(q, i, high, b)
        if not math.isfinite(c):
            return 0.0
        if c >= investment:
            break
        low = high
        high *= 2

    shares = low
    for _ in range(MAX_BISECTIONS):
        if high - low <= precision:
            break
        mid = (low + high) / 2
        if cost_to_buy(q, i, mid, b) < investment:
            shares = mid
            low = mid
        else:
            high = mid
    return shares


def quantities_for_prices(p: Sequence[float], b: float) -> list[float]:
    """
    Quantity vector whose prices equal p, shifted so its smallest entry
    is 0.

    q_i = b * ln(p_i) - min_j b * ln(p_j)

    Softmax is invariant to a common shift, so any constant works; the
    shift keeps every quantity non-negative.
    """
    logs = [b * math.log(v) for v in p]
    m = min(logs)
    return [v - m for v in logs]


# ---------------------------------------------------------------------------
# Bounds
# ---------------------------------------------------------------------------

def max_loss(b: float, n: int) -> float:
    """Maximum market maker loss: b * ln(n)."""
    return b * math.log(n)
