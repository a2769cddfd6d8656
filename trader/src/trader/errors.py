"""
Error taxonomy for the signed REST client.

Every failure raised by :class:`~trader.src.trader.clients.signed_client.SignedRequestClient`
is one of the classes below.  Each carries a short ``kind`` tag so that
callers (and the tagged :class:`~trader.src.trader.models.OrderResult`) can
tell a local validation problem apart from a network failure or an order
the exchange refused:

* ``validation`` - rejected locally before anything was signed or sent.
* ``duplicate`` - the same order is already in flight.
* ``transport`` - DNS, connection, timeout or an unparseable body.
* ``exchange`` - the exchange answered with a non-2xx status.
"""

from __future__ import annotations

from typing import Optional


class TradingError(Exception):
    """Base class for all client errors."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class OrderValidationError(TradingError):
    """Order or transfer failed a local check; no request was made."""

    kind = "validation"


class DuplicateOrderError(OrderValidationError):
    """An order with the same symbol, side and client order id is in flight."""

    kind = "duplicate"


class TransportError(TradingError):
    """The request never produced a usable exchange response."""

    kind = "transport"


class ExchangeRejection(TradingError):
    """The exchange returned an error status.

    ``code`` and ``message`` come from the ``code``/``msg`` fields of the
    response body when present.
    """

    kind = "exchange"

    def __init__(self, status: int, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.message} (status={self.status}, code={self.code})"
        return f"{self.message} (status={self.status})"


__all__ = [
    "TradingError",
    "OrderValidationError",
    "DuplicateOrderError",
    "TransportError",
    "ExchangeRejection",
]
