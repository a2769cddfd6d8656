"""
Client utilities for interacting with the exchange.

This package provides the signed REST client used for account queries,
balance transfers, order placement and public market data.
"""

from .signed_client import SignedRequestClient  # noqa: F401
