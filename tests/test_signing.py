"""Tests for query-string signing."""

from trader.src.trader.models import Credentials
from trader.src.trader.signing import API_KEY_HEADER, QuerySigner, build_query, sign


def test_sign_matches_published_example() -> None:
    # Example request from the Binance-compatible futures API documentation
    secret = "NhqPtmdSJYdKjVHjA7PZj4Mge3R5YNiP1e3UZjInClVN65XAbvqqM6A7H5fATj0j"
    query = (
        "symbol=LTCBTC&side=BUY&type=LIMIT&timeInForce=GTC&quantity=1&price=0.1"
        "&recvWindow=5000&timestamp=1499827319559"
    )
    assert sign(query, secret) == "c8db56825ae71d6d79447849e617115f4a920fa2acdcab2b053c4b2838bd6b71"


def test_sign_is_deterministic_lowercase_hex() -> None:
    first = sign("timestamp=1700000000000", "secret")
    second = sign("timestamp=1700000000000", "secret")
    assert first == second
    assert len(first) == 64
    assert first == first.lower()
    int(first, 16)


def test_parameter_order_changes_signature() -> None:
    forward = build_query({"symbol": "BTCUSDT", "side": "BUY", "timestamp": 1})
    reverse = build_query({"timestamp": 1, "side": "BUY", "symbol": "BTCUSDT"})
    assert forward == "symbol=BTCUSDT&side=BUY&timestamp=1"
    assert reverse == "timestamp=1&side=BUY&symbol=BTCUSDT"
    assert sign(forward, "secret") != sign(reverse, "secret")


def test_signer_appends_signature_and_builds_headers() -> None:
    signer = QuerySigner(Credentials(api_key="key", api_secret="secret"))
    query = signer.signed_query({"asset": "USDT", "amount": "10", "type": 1, "timestamp": 5})
    body, _, signature = query.partition("&signature=")
    assert body == "asset=USDT&amount=10&type=1&timestamp=5"
    assert signature == sign(body, "secret")
    assert signer.get_headers() == {API_KEY_HEADER: "key"}
