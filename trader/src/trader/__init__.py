"""
Aster futures trading client.

This package contains the signed REST client for the Aster futures API,
the models and error types it exchanges with callers, credential loading,
configuration, telemetry and the account polling service.  Long-running
services expose an asynchronous ``run()`` coroutine that is started by
``worker_main.py``.
"""

from .clients import SignedRequestClient  # noqa: F401
from .errors import (  # noqa: F401
    DuplicateOrderError,
    ExchangeRejection,
    OrderValidationError,
    TradingError,
    TransportError,
)
from .models import (  # noqa: F401
    AccountSnapshot,
    Credentials,
    OrderRequest,
    OrderResult,
    TransferDirection,
    TransferResult,
)
from .signing import sign  # noqa: F401
