"""
Signed REST client for the Aster futures API.

This module defines a lightweight asynchronous client for the Aster
(Binance-compatible) USDT-margined futures REST API.  Signed endpoints
(account, transfer, order) carry an HMAC-SHA256 signature of the exact
query string plus the ``X-MBX-APIKEY`` header; public market-data
endpoints are plain GETs.

Behaviour worth knowing before calling it:

* Orders are validated locally first: quantity and (for LIMIT orders)
  price must be present, and the notional value, computed from the same
  rounded strings that are sent, must reach the symbol's minimum
  (6.0 USDT by default).  Failing orders never reach the network.
* Each order carries a client order id (``newClientOrderId``).  While an
  order is in flight, a second submission with the same symbol, side and
  client order id is rejected before it is signed.
* Writes (orders, transfers) are sent exactly once.  Reads are retried on
  transport failures with exponential backoff via tenacity.
* A token bucket caps the number of requests per minute.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional, Set, Tuple

import aiohttp
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from yarl import URL

from ..errors import (
    DuplicateOrderError,
    ExchangeRejection,
    OrderValidationError,
    TradingError,
    TransportError,
)
from ..models import (
    AccountSnapshot,
    Credentials,
    OrderRequest,
    OrderResult,
    TransferDirection,
    TransferResult,
)
from ..settings import ClientSettings, SymbolRules, format_decimal
from ..signing import QuerySigner, build_query
from ..telemetry import ORDERS, REQUEST_LATENCY, REQUESTS, TRANSFERS, WALLET_BALANCE


logger = logging.getLogger(__name__)

ACCOUNT_PATH = "/fapi/v1/account"
TRANSFER_PATH = "/fapi/v1/transfer"
ORDER_PATH = "/fapi/v1/order"
TICKER_24HR_PATH = "/fapi/v1/ticker/24hr"
DEPTH_PATH = "/fapi/v1/depth"


def _now_millis() -> int:
    return int(time.time() * 1000)


class SignedRequestClient:
    """Asynchronous Aster futures REST client with request signing."""

    def __init__(
        self,
        credentials: Credentials,
        *,
        settings: Optional[ClientSettings] = None,
        base_url: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        """Construct the client.

        Args:
            credentials: API key and secret, typically from
                :func:`~trader.src.trader.secrets_manager.load_credentials`.
            settings: Client configuration; defaults to ``ClientSettings.from_env()``.
            base_url: Overrides ``settings.base_url``.
            clock: Returns the current time in milliseconds; used for ``timestamp``.
        """
        self.settings = settings or ClientSettings.from_env()
        self.base_url = (base_url or self.settings.base_url).rstrip("/")
        self.signer = QuerySigner(credentials)
        self._clock = clock or _now_millis
        self.last_snapshot: Optional[AccountSnapshot] = None
        # (symbol, side, client_order_id) of orders currently being submitted
        self._in_flight: Set[Tuple[str, str, str]] = set()
        self._in_flight_lock = asyncio.Lock()
        # Token bucket for the per-minute request limit
        self.max_requests_per_minute = self.settings.max_requests_per_minute
        self.tokens = self.max_requests_per_minute
        self._token_lock = asyncio.Lock()
        self._last_refill = time.monotonic()
        self._token_interval = (
            60.0 / self.max_requests_per_minute if self.max_requests_per_minute > 0 else 0.0
        )

    async def _acquire_token(self) -> None:
        """Wait until a request token is available based on the token bucket.

        A limit of zero or less disables rate limiting.
        """
        if self.max_requests_per_minute <= 0:
            return
        while True:
            async with self._token_lock:
                now = time.monotonic()
                elapsed = now - self._last_refill
                if elapsed > 0:
                    new_tokens = int(elapsed / self._token_interval)
                    if new_tokens > 0:
                        self.tokens = min(self.max_requests_per_minute, self.tokens + new_tokens)
                        self._last_refill = now
                if self.tokens > 0:
                    self.tokens -= 1
                    return
            await asyncio.sleep(self._token_interval)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        query: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        await self._acquire_token()
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)
        started = time.monotonic()
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                # encoded=True keeps the signed query byte-for-byte as signed
                async with session.request(method, URL(url, encoded=True), headers=headers) as resp:
                    status = resp.status
                    body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            REQUESTS.labels(method=method, path=path, outcome="transport").inc()
            logger.error("%s %s failed: %r", method, path, exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc
        finally:
            REQUEST_LATENCY.labels(method=method, path=path).observe(time.monotonic() - started)

        if status >= 400:
            REQUESTS.labels(method=method, path=path, outcome="rejected").inc()
            raise self._rejection(status, body)
        try:
            data = json.loads(body) if body else None
        except ValueError as exc:
            REQUESTS.labels(method=method, path=path, outcome="transport").inc()
            logger.error("%s %s returned invalid JSON: %s", method, path, body[:200])
            raise TransportError(f"Invalid JSON response from {path}") from exc
        REQUESTS.labels(method=method, path=path, outcome="ok").inc()
        return data

    @staticmethod
    def _rejection(status: int, body: str) -> ExchangeRejection:
        # Avoid logging full response bodies; truncate to prevent leakage
        logger.error("REST API error %s: %s", status, body[:200] if body else "")
        message = f"Request failed with status code {status}"
        code: Optional[int] = None
        try:
            data = json.loads(body) if body else None
        except ValueError:
            data = None
        if isinstance(data, dict):
            if data.get("msg"):
                message = str(data["msg"])
            if isinstance(data.get("code"), int):
                code = data["code"]
        return ExchangeRejection(status, message, code)

    async def _signed_request(self, method: str, path: str, params: Mapping[str, Any]) -> Any:
        query = self.signer.signed_query(params)
        headers = self.signer.get_headers()
        if method != "GET":
            headers["Content-Type"] = "application/x-www-form-urlencoded"
        return await self._request(method, path, query, headers)

    async def _read(
        self, path: str, params: Optional[Mapping[str, Any]] = None, *, signed: bool = False
    ) -> Any:
        """GET with retries on transport failures; signed reads get a fresh timestamp per attempt."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.read_retries),
            wait=wait_exponential(min=1, max=8),
            retry=retry_if_exception_type(TransportError),
            reraise=True,
        ):
            with attempt:
                if signed:
                    query_params = dict(params or {})
                    query_params["timestamp"] = self._clock()
                    return await self._signed_request("GET", path, query_params)
                return await self._request("GET", path, build_query(params or {}))

    # ------------------------------------------------------------------
    # Market data
    # ------------------------------------------------------------------

    async def fetch_ticker_24hr(self, symbol: Optional[str] = None) -> Any:
        """Return 24h statistics for one symbol (a dict) or all symbols (a list)."""
        params = {"symbol": symbol.upper()} if symbol else None
        return await self._read(TICKER_24HR_PATH, params)

    async def fetch_last_price(self, symbol: str) -> Decimal:
        ticker = await self.fetch_ticker_24hr(symbol)
        last = ticker.get("lastPrice") if isinstance(ticker, dict) else None
        try:
            return Decimal(str(last))
        except InvalidOperation:
            raise OrderValidationError(f"No last price available for {symbol}") from None

    async def fetch_order_book(self, symbol: str, limit: int = 10) -> Optional[Dict[str, Any]]:
        """Return the top ``limit`` levels of the book, or ``None`` for an empty symbol."""
        if not symbol or not symbol.strip():
            return None
        return await self._read(DEPTH_PATH, {"symbol": symbol.strip().upper(), "limit": limit})

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    async def fetch_account_info(self) -> Optional[AccountSnapshot]:
        """Fetch balances and derive the USDT balance.

        Returns ``None`` on any failure; the error is logged rather than
        raised.  A successful snapshot is also kept in ``last_snapshot``.
        """
        try:
            data = await self._read(ACCOUNT_PATH, signed=True)
            snapshot = AccountSnapshot.from_payload(data)
        except (TradingError, ValueError) as exc:
            logger.error("Error fetching account info: %s", exc)
            return None
        self.last_snapshot = snapshot
        WALLET_BALANCE.set(snapshot.total_wallet_balance)
        logger.debug("Account balance %.4f USDT", snapshot.total_wallet_balance)
        return snapshot

    async def submit_transfer(
        self,
        asset: str,
        amount: Any,
        direction: TransferDirection = TransferDirection.SPOT_TO_FUTURES,
    ) -> Dict[str, Any]:
        """Send a transfer request; raises :class:`TradingError` subclasses on failure."""
        amount_text = str(amount).strip()
        try:
            valid = Decimal(amount_text) > 0
        except InvalidOperation:
            valid = False
        if not asset or not valid:
            raise OrderValidationError("Transfer requires an asset and a positive amount")
        params = {
            "asset": asset.upper(),
            "amount": amount_text,
            "type": str(int(direction)),
            "timestamp": self._clock(),
        }
        data = await self._signed_request("POST", TRANSFER_PATH, params)
        logger.info("Transfer response: %s", data)
        return data if isinstance(data, dict) else {}

    async def transfer(
        self,
        asset: str,
        amount: Any,
        direction: TransferDirection = TransferDirection.SPOT_TO_FUTURES,
    ) -> TransferResult:
        """Move funds between spot and futures wallets and refresh the snapshot."""
        direction = TransferDirection(direction)
        try:
            data = await self.submit_transfer(asset, amount, direction)
        except TradingError as exc:
            logger.error("Error transferring %s %s: %s", amount, asset, exc)
            TRANSFERS.labels(asset=str(asset).upper(), outcome=exc.kind).inc()
            return TransferResult(
                ok=False,
                asset=str(asset).upper(),
                amount=str(amount),
                direction=direction,
                message=exc.message,
                error_kind=exc.kind,
                code=getattr(exc, "code", None),
            )
        TRANSFERS.labels(asset=asset.upper(), outcome="ok").inc()
        snapshot = await self.fetch_account_info()
        return TransferResult(
            ok=True,
            asset=asset.upper(),
            amount=str(amount).strip(),
            direction=direction,
            tran_id=data.get("tranId"),
            message=f"Transferred {str(amount).strip()} {asset.upper()}",
            snapshot=snapshot,
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def _reference_price(self, req: OrderRequest) -> Decimal:
        if req.order_type == "LIMIT":
            return req.price  # type: ignore[return-value]
        if req.last_price is not None:
            return req.last_price
        return await self.fetch_last_price(req.symbol)

    async def check_notional(self, req: OrderRequest) -> Tuple[str, Decimal]:
        """Validate an order locally.

        Returns the formatted quantity and the notional value computed from
        the rounded quantity and price.

        Raises:
            OrderValidationError: on a missing field or a notional below the minimum.
        """
        if req.quantity is None:
            raise OrderValidationError("Quantity is required")
        if req.order_type == "LIMIT" and req.price is None:
            raise OrderValidationError("Price is required for LIMIT orders")
        rules = self.settings.rules_for(req.symbol)
        price = await self._reference_price(req)
        try:
            quantity_text = format_decimal(req.quantity, rules.quantity_precision)
            price_text = format_decimal(price, rules.price_precision)
        except ValueError as exc:
            raise OrderValidationError(str(exc)) from exc
        if Decimal(quantity_text) <= 0:
            raise OrderValidationError("Quantity must be greater than zero")
        notional = Decimal(quantity_text) * Decimal(price_text)
        if notional < rules.min_notional:
            raise OrderValidationError(
                f"Order notional value must be at least {rules.min_notional} USDT. "
                f"Current notional: {format_decimal(notional, 2)} USDT"
            )
        return quantity_text, notional

    def build_order_params(
        self, req: OrderRequest, quantity_text: str, client_order_id: str
    ) -> Dict[str, str]:
        """Order parameters in the order they are serialised and signed."""
        rules: SymbolRules = self.settings.rules_for(req.symbol)
        params = {
            "symbol": req.symbol,
            "side": req.side.upper(),
            "type": req.order_type,
            "quantity": quantity_text,
            "recvWindow": str(self.settings.recv_window),
            "timestamp": str(self._clock()),
        }
        if req.order_type == "LIMIT":
            params["price"] = format_decimal(req.price, rules.price_precision)
            params["timeInForce"] = req.time_in_force
        params["newClientOrderId"] = client_order_id
        return params

    async def submit_order(self, req: OrderRequest) -> OrderResult:
        """Validate, sign and send an order.

        Raises:
            OrderValidationError: local validation failed, nothing was sent.
            DuplicateOrderError: the same order is already in flight.
            TransportError: the request did not reach the exchange or the
                response could not be read.
            ExchangeRejection: the exchange refused the order.
        """
        quantity_text, notional = await self.check_notional(req)
        client_order_id = req.client_order_id or uuid.uuid4().hex
        key = (req.symbol, req.side, client_order_id)
        async with self._in_flight_lock:
            if key in self._in_flight:
                raise DuplicateOrderError(
                    f"Order {client_order_id} for {req.symbol} {req.side} is already being submitted"
                )
            self._in_flight.add(key)
        try:
            params = self.build_order_params(req, quantity_text, client_order_id)
            data = await self._signed_request("POST", ORDER_PATH, params)
        finally:
            async with self._in_flight_lock:
                self._in_flight.discard(key)
        data = data if isinstance(data, dict) else {}
        logger.info("Order response: %s", data)
        return OrderResult(
            ok=True,
            status=str(data.get("status", "NEW")),
            symbol=req.symbol,
            side=req.side,
            client_order_id=str(data.get("clientOrderId") or client_order_id),
            order_id=data.get("orderId"),
            notional=notional,
            message=f"Your {req.side} order for {quantity_text} {req.symbol} has been placed.",
            raw=data,
        )

    async def place_order(self, req: OrderRequest) -> OrderResult:
        """Submit an order and report the outcome as a tagged :class:`OrderResult`.

        Never raises :class:`TradingError`; failures come back with
        ``ok=False``, ``error_kind`` set and a message suitable for display.
        """
        if req.client_order_id is None:
            req = req.model_copy(update={"client_order_id": uuid.uuid4().hex})
        try:
            result = await self.submit_order(req)
        except TradingError as exc:
            if isinstance(exc, OrderValidationError):
                logger.warning("Order %s rejected locally: %s", req.client_order_id, exc)
                status = "REJECTED"
            else:
                logger.error("Error placing order %s: %s", req.client_order_id, exc)
                status = "FAILED"
            ORDERS.labels(symbol=req.symbol, side=req.side, outcome=exc.kind).inc()
            return OrderResult(
                ok=False,
                status=status,
                symbol=req.symbol,
                side=req.side,
                client_order_id=req.client_order_id,
                message=exc.message,
                error_kind=exc.kind,
                code=getattr(exc, "code", None),
            )
        ORDERS.labels(symbol=req.symbol, side=req.side, outcome="placed").inc()
        return result
