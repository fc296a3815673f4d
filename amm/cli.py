#!/usr/bin/env python3
"""
Pricing CLI. Stateless LMSR and odds calculations.

Usage:
    python3 -m amm.cli prices Q1 Q2 [Q3 ...] [--b 100]
    python3 -m amm.cli quote OUTCOME_INDEX AMOUNT Q1 Q2 [...] [--b 100]
    python3 -m amm.cli odds PROBABILITY
    python3 -m amm.cli american ODDS
    python3 -m amm.cli max-loss B N

Output: JSON, one line. {"ok": true, ...} or {"ok": false, "error": "..."}
"""

import argparse
import json
import sys

from amm.config import get_settings
from amm.lmsr import (
    cost, cost_to_buy, max_loss, price, prices, shares_to_receive,
)
from amm.odds import (
    american_odds_to_price, clamp_probability, format_odds,
    price_to_american_odds, price_to_decimal_odds,
)


def reply(data):
    print(json.dumps(data))


def _check_b(b):
    if not b > 0:
        raise ValueError(f"liquidity parameter must be positive, got {b}")


def cmd_prices(args):
    _check_b(args.b)
    p = prices(args.quantities, args.b)
    return {"ok": True, "b": args.b, "cost": cost(args.quantities, args.b),
            "prices": p,
            "american": [format_odds(clamp_probability(v)) for v in p],
            "decimal": [price_to_decimal_odds(clamp_probability(v))
                        for v in p]}


def cmd_quote(args):
    _check_b(args.b)
    q, i = args.quantities, args.outcome
    if not 0 <= i < len(q):
        raise ValueError(f"outcome index {i} out of range")
    shares = shares_to_receive(q, i, args.amount, args.b, args.precision)
    before = price(q, i, args.b)
    q_after = list(q)
    q_after[i] += shares
    after = price(q_after, i, args.b)
    return {"ok": True, "shares": shares,
            "cost": cost_to_buy(q, i, shares, args.b),
            "price_before": before, "price_after": after,
            "slippage": (after - before) / before}


def cmd_odds(args):
    p = clamp_probability(args.probability)
    return {"ok": True, "probability": p,
            "american": price_to_american_odds(p),
            "decimal": price_to_decimal_odds(p),
            "display": format_odds(p)}


def cmd_american(args):
    p = american_odds_to_price(args.odds)
    return {"ok": True, "odds": args.odds, "probability": p,
            "decimal": price_to_decimal_odds(clamp_probability(p))}


def cmd_max_loss(args):
    _check_b(args.b)
    return {"ok": True, "b": args.b, "n": args.n,
            "max_loss": max_loss(args.b, args.n)}


def build_parser():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="LMSR pricing CLI")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("prices")
    p.add_argument("quantities", type=float, nargs="+")
    p.add_argument("--b", type=float, default=settings.default_liquidity)

    p = sub.add_parser("quote")
    p.add_argument("outcome", type=int)
    p.add_argument("amount", type=float)
    p.add_argument("quantities", type=float, nargs="+")
    p.add_argument("--b", type=float, default=settings.default_liquidity)
    p.add_argument("--precision", type=float,
                   default=settings.share_precision)

    p = sub.add_parser("odds")
    p.add_argument("probability", type=float)

    p = sub.add_parser("american")
    p.add_argument("odds", type=float)

    p = sub.add_parser("max-loss")
    p.add_argument("b", type=float)
    p.add_argument("n", type=int)

    return parser


COMMANDS = {
    "prices": cmd_prices,
    "quote": cmd_quote,
    "odds": cmd_odds,
    "american": cmd_american,
    "max-loss": cmd_max_loss,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        reply(COMMANDS[args.command](args))
    except (ValueError, ZeroDivisionError, OverflowError) as e:
        reply({"ok": False, "error": str(e)})
        sys.exit(1)


if __name__ == "__main__":
    main()
