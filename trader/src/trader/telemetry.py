"""
Telemetry for the trading client.

Request, order and transfer outcomes are exposed as Prometheus metrics.
The collectors are module level so every client instance in a process
reports into the same registry; ``start_metrics_server`` exposes them over
HTTP on the port defined by ``PROMETHEUS_PORT`` (default 9108).
"""

import logging
import os
from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)


REQUESTS = Counter(
    "aster_requests_total",
    "REST requests sent to the exchange",
    labelnames=["method", "path", "outcome"],
)
REQUEST_LATENCY = Histogram(
    "aster_request_seconds",
    "Latency of REST requests",
    labelnames=["method", "path"],
)
ORDERS = Counter(
    "aster_orders_total",
    "Order submissions by outcome (placed, validation, duplicate, transport, exchange)",
    labelnames=["symbol", "side", "outcome"],
)
TRANSFERS = Counter(
    "aster_transfers_total",
    "Balance transfers by outcome",
    labelnames=["asset", "outcome"],
)
WALLET_BALANCE = Gauge("aster_wallet_balance", "Last reported USDT balance")


def start_metrics_server(port: Optional[int] = None) -> bool:
    """Start the Prometheus HTTP endpoint; return False if it could not bind."""
    port = port if port is not None else int(os.environ.get("PROMETHEUS_PORT", "9108"))
    try:
        start_http_server(port)
    except OSError as exc:
        logger.warning("Failed to start Prometheus server on port %d: %s", port, exc)
        return False
    logger.info("Metrics server listening on port %d", port)
    return True
