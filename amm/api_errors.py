"""
API error handling. Structured JSON errors with codes.

Every error response: {"error": {"code": "...", "message": "...", "details": {...}}}
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from amm.errors import (
    AlreadyTerminal, BetNotFound, MarketError, MarketNotFound, StaleWrite,
)
from amm.ledger import InsufficientBalance


class APIError(Exception):
    """Structured API error with HTTP status and machine-readable code."""

    def __init__(self, status: int, code: str, message: str,
                 details: dict | None = None):
        self.status = status
        self.code = code
        self.message = message
        self.details = details or {}

    def response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status,
            content={"error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }},
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return exc.response()


def translate_engine_error(exc: Exception) -> APIError:
    """Translate engine exceptions to structured API errors."""
    if isinstance(exc, (MarketNotFound, BetNotFound)):
        return APIError(404, exc.code, exc.message, exc.details)

    if isinstance(exc, (AlreadyTerminal, StaleWrite)):
        return APIError(409, exc.code, exc.message, exc.details)

    if isinstance(exc, MarketError):
        return APIError(400, exc.code, exc.message, exc.details)

    if isinstance(exc, InsufficientBalance):
        return APIError(400, InsufficientBalance.code, str(exc))

    return APIError(400, "bad_request", str(exc))
