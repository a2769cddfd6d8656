"""Tests for order placement through the SignedRequestClient.

Requests go to an in-process fake exchange so the exact query strings,
headers and signatures the client produces can be inspected.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest
from prometheus_client import REGISTRY

from trader.src.trader.errors import DuplicateOrderError, ExchangeRejection, OrderValidationError
from trader.src.trader.models import OrderRequest
from trader.src.trader.settings import SymbolRules
from trader.src.trader.signing import sign

from tests.helpers.fake_exchange import API_KEY, API_SECRET, FIXED_TIMESTAMP

ORDER_PATH = "/fapi/v1/order"


def _split_signature(query_string: str):
    body, _, signature = query_string.partition("&signature=")
    return body, signature


def _order_count(symbol: str, side: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "aster_orders_total", {"symbol": symbol, "side": side, "outcome": outcome}
    )
    return value or 0.0


@pytest.mark.asyncio
async def test_low_notional_rejected_without_network(fake_exchange, client) -> None:
    before = _order_count("BTCUSDT", "BUY", "validation")
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="0.001", price="1000")
    result = await client.place_order(req)
    assert result.ok is False
    assert result.status == "REJECTED"
    assert result.error_kind == "validation"
    assert "6.0" in result.message
    assert "1.00" in result.message
    assert fake_exchange.requests == []
    assert _order_count("BTCUSDT", "BUY", "validation") == before + 1


@pytest.mark.asyncio
async def test_limit_order_is_signed_in_insertion_order(fake_exchange, client) -> None:
    fake_exchange.responses[ORDER_PATH] = (
        200,
        {"orderId": 12345, "clientOrderId": "abc123", "status": "NEW"},
    )
    req = OrderRequest(
        symbol="BTCUSDT", side="buy", quantity="1", price="10", client_order_id="abc123"
    )
    result = await client.place_order(req)

    assert result.ok is True
    assert result.order_id == 12345
    assert result.status == "NEW"
    assert result.notional == Decimal("10")
    [recorded] = fake_exchange.requests
    assert recorded.method == "POST"
    assert recorded.path == ORDER_PATH
    assert recorded.headers["X-MBX-APIKEY"] == API_KEY
    body, signature = _split_signature(recorded.query_string)
    assert body == (
        "symbol=BTCUSDT&side=BUY&type=LIMIT&quantity=1.000000&recvWindow=5000"
        f"&timestamp={FIXED_TIMESTAMP}&price=10.00000000&timeInForce=GTC"
        "&newClientOrderId=abc123"
    )
    assert signature == sign(body, API_SECRET)


@pytest.mark.asyncio
async def test_market_order_uses_last_price_and_omits_price(fake_exchange, client) -> None:
    req = OrderRequest(
        symbol="ETHUSDT",
        side="SELL",
        order_type="MARKET",
        quantity="0.01",
        last_price="2000",
        client_order_id="m1",
    )
    result = await client.place_order(req)
    assert result.ok is True
    assert result.notional == Decimal("20")
    body, _ = _split_signature(fake_exchange.requests[0].query_string)
    assert "price=" not in body
    assert "timeInForce" not in body
    assert "type=MARKET" in body


@pytest.mark.asyncio
async def test_market_order_without_price_fetches_ticker(fake_exchange, client) -> None:
    fake_exchange.responses["/fapi/v1/ticker/24hr"] = (200, {"symbol": "ETHUSDT", "lastPrice": "1.5"})
    req = OrderRequest(symbol="ETHUSDT", side="BUY", order_type="MARKET", quantity="2")
    result = await client.place_order(req)
    # 2 x 1.5 = 3.0 is below the minimum, so only the ticker was requested
    assert result.error_kind == "validation"
    assert [r.path for r in fake_exchange.requests] == ["/fapi/v1/ticker/24hr"]
    assert fake_exchange.requests[0].query_string == "symbol=ETHUSDT"


@pytest.mark.asyncio
async def test_missing_fields_are_validation_errors(fake_exchange, client) -> None:
    with pytest.raises(OrderValidationError, match="Quantity"):
        await client.submit_order(OrderRequest(symbol="BTCUSDT", side="BUY", price="10"))
    with pytest.raises(OrderValidationError, match="Price"):
        await client.submit_order(OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1"))
    assert fake_exchange.requests == []


@pytest.mark.asyncio
async def test_exchange_rejection_surfaces_message(fake_exchange, client) -> None:
    fake_exchange.responses[ORDER_PATH] = (400, {"code": -2019, "msg": "Margin is insufficient."})
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="10")
    result = await client.place_order(req)
    assert result.ok is False
    assert result.status == "FAILED"
    assert result.error_kind == "exchange"
    assert result.message == "Margin is insufficient."
    assert result.code == -2019
    assert result.client_order_id

    with pytest.raises(ExchangeRejection) as info:
        await client.submit_order(req)
    assert info.value.status == 400
    # Writes are never retried
    assert len(fake_exchange.requests_for(ORDER_PATH)) == 2


@pytest.mark.asyncio
async def test_rejection_without_msg_uses_status(fake_exchange, client) -> None:
    fake_exchange.responses[ORDER_PATH] = (502, "Bad Gateway")
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="10")
    result = await client.place_order(req)
    assert result.error_kind == "exchange"
    assert result.message == "Request failed with status code 502"
    assert result.code is None


@pytest.mark.asyncio
async def test_transport_failure_is_tagged(client_factory) -> None:
    client = client_factory(base_url="http://127.0.0.1:1")
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="10")
    result = await client.place_order(req)
    assert result.ok is False
    assert result.error_kind == "transport"
    assert result.message


@pytest.mark.asyncio
async def test_duplicate_in_flight_order_is_rejected(fake_exchange, client) -> None:
    fake_exchange.delay = 0.2
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="10", client_order_id="dup-1")
    first, second = await asyncio.gather(client.place_order(req), client.place_order(req))
    outcomes = sorted([first.error_kind or "ok", second.error_kind or "ok"])
    assert outcomes == ["duplicate", "ok"]
    assert len(fake_exchange.requests_for(ORDER_PATH)) == 1

    # The key is released once the first submission finishes
    fake_exchange.delay = 0.0
    again = await client.place_order(req)
    assert again.ok is True


@pytest.mark.asyncio
async def test_distinct_client_order_ids_both_submit(fake_exchange, client) -> None:
    fake_exchange.delay = 0.1
    reqs = [
        OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="10", client_order_id=f"id-{i}")
        for i in range(2)
    ]
    results = await asyncio.gather(*(client.place_order(r) for r in reqs))
    assert all(r.ok for r in results)
    assert len(fake_exchange.requests_for(ORDER_PATH)) == 2


@pytest.mark.asyncio
async def test_generated_client_order_id_is_sent(fake_exchange, client) -> None:
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="10")
    result = await client.place_order(req)
    assert result.ok is True
    assert len(result.client_order_id) == 32
    assert f"newClientOrderId={result.client_order_id}" in fake_exchange.requests[0].query_string


def test_duplicate_error_is_a_validation_error() -> None:
    assert issubclass(DuplicateOrderError, OrderValidationError)
    assert DuplicateOrderError("x").kind == "duplicate"


@pytest.mark.asyncio
async def test_symbol_rules_override_precision(fake_exchange, client_factory) -> None:
    client = client_factory(symbol_rules={"BTCUSDT": SymbolRules(3, 1, Decimal("5"))})
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="0.0105", price="500.06", client_order_id="r1")
    result = await client.place_order(req)
    # 0.011 x 500.1 = 5.5011 clears the lower per-symbol minimum
    assert result.ok is True
    body, _ = _split_signature(fake_exchange.requests[0].query_string)
    assert "quantity=0.011&" in body
    assert "price=500.1&" in body


@pytest.mark.asyncio
async def test_notional_message_rounds_half_up(fake_exchange, client) -> None:
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="5.125")
    result = await client.place_order(req)
    assert result.error_kind == "validation"
    assert "Current notional: 5.13 USDT" in result.message


@pytest.mark.asyncio
async def test_zero_rate_limit_does_not_block(fake_exchange, client_factory) -> None:
    client = client_factory(max_requests_per_minute=0)
    req = OrderRequest(symbol="BTCUSDT", side="BUY", quantity="1", price="10", client_order_id="nolimit")
    result = await asyncio.wait_for(client.place_order(req), timeout=2)
    assert result.ok is True
    assert len(fake_exchange.requests_for(ORDER_PATH)) == 1
