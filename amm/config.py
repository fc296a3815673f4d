"""
Settings from environment variables, and logging setup.

    AMM_DEFAULT_LIQUIDITY   LMSR b for markets created without one (100)
    AMM_MAX_SLIPPAGE        default max relative price move per bet (0.05)
    AMM_CASH_OUT_FEE        fee taken off cash-out value (0.02)
    AMM_SHARE_PRECISION     bisection width for share solving (0.01)
    AMM_INITIAL_CREDITS     credits granted to a new account (0)
    AMM_LOG_LEVEL           DEBUG, INFO, WARNING, ... (INFO)
    AMM_LOG_FORMAT          console or json (console)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

import structlog


@dataclass(frozen=True)
class Settings:
    default_liquidity: float = 100.0
    max_slippage: float = 0.05
    cash_out_fee: float = 0.02
    share_precision: float = 0.01
    initial_credits: float = 0.0
    log_level: str = "INFO"
    log_format: str = "console"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            default_liquidity=float(env.get("AMM_DEFAULT_LIQUIDITY", "100")),
            max_slippage=float(env.get("AMM_MAX_SLIPPAGE", "0.05")),
            cash_out_fee=float(env.get("AMM_CASH_OUT_FEE", "0.02")),
            share_precision=float(env.get("AMM_SHARE_PRECISION", "0.01")),
            initial_credits=float(env.get("AMM_INITIAL_CREDITS", "0")),
            log_level=env.get("AMM_LOG_LEVEL", "INFO").upper(),
            log_format=env.get("AMM_LOG_FORMAT", "console"),
        )

    @property
    def log_level_num(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(settings: Settings) -> None:
    """Configure structlog. Call once at application entry."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            settings.log_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
