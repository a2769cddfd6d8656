"""Pytest configuration for path setup and shared fixtures.

When pytest is executed as an installed script, the repository root is not
automatically added to ``sys.path``.  This file ensures that the project
root is available so that ``trader.src.trader``, ``scripts`` and the test
helpers can be imported during collection.  It also provides a fake
exchange served over HTTP and a client pointed at it.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer


ROOT = Path(__file__).resolve().parents[1]

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from tests.helpers.fake_exchange import API_KEY, API_SECRET, FIXED_TIMESTAMP, FakeExchange  # noqa: E402
from trader.src.trader.clients import SignedRequestClient  # noqa: E402
from trader.src.trader.models import Credentials  # noqa: E402
from trader.src.trader.settings import ClientSettings  # noqa: E402




@pytest.fixture
def credentials() -> Credentials:
    return Credentials(api_key=API_KEY, api_secret=API_SECRET)


@pytest_asyncio.fixture
async def fake_exchange():
    exchange = FakeExchange()
    server = TestServer(exchange.app())
    await server.start_server()
    exchange.base_url = f"http://{server.host}:{server.port}"
    try:
        yield exchange
    finally:
        await server.close()


def make_client(base_url: str, credentials: Credentials, **settings_overrides) -> SignedRequestClient:
    options = {"base_url": base_url, "read_retries": 1, "request_timeout": 2.0}
    options.update(settings_overrides)
    return SignedRequestClient(
        credentials,
        settings=ClientSettings(**options),
        clock=lambda: FIXED_TIMESTAMP,
    )


@pytest.fixture
def client(fake_exchange, credentials) -> SignedRequestClient:
    return make_client(fake_exchange.base_url, credentials)


@pytest.fixture
def client_factory(fake_exchange, credentials):
    """Build clients against the fake exchange with custom settings."""

    def factory(base_url: str | None = None, **settings_overrides) -> SignedRequestClient:
        return make_client(base_url or fake_exchange.base_url, credentials, **settings_overrides)

    return factory
