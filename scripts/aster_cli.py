#!/usr/bin/env python
"""Command line access to the Aster futures client.

Subcommands::

    account                         show balances
    ticker [SYMBOL]                 24h statistics
    depth SYMBOL [--limit N]        order book
    order SYMBOL SIDE QTY [...]     place an order
    transfer ASSET AMOUNT [...]     move funds between spot and futures

Credentials are resolved with the configured secrets manager
(``ASTER_API_KEY`` / ``ASTER_API_SECRET`` by default).  Public commands
(``ticker``, ``depth``) still need the variables set because the same
client handles signed and unsigned requests.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, List, Optional

from trader.src.trader.clients import SignedRequestClient
from trader.src.trader.models import OrderRequest, TransferDirection
from trader.src.trader.secrets_manager import MissingCredentialsError, load_credentials
from trader.src.trader.settings import ClientSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Aster futures REST client.")
    parser.add_argument("--base-url", default=None, help="Override ASTER_BASE_URL.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("account", help="Show account balances.")

    ticker = sub.add_parser("ticker", help="Show 24h ticker statistics.")
    ticker.add_argument("symbol", nargs="?", default=None)

    depth = sub.add_parser("depth", help="Show the order book.")
    depth.add_argument("symbol")
    depth.add_argument("--limit", type=int, default=10)

    order = sub.add_parser("order", help="Place an order.")
    order.add_argument("symbol")
    order.add_argument("side", type=str.upper, choices=["BUY", "SELL"])
    order.add_argument("quantity")
    order.add_argument("--type", dest="order_type", type=str.upper, choices=["LIMIT", "MARKET"], default="LIMIT")
    order.add_argument("--price", default=None)
    order.add_argument("--tif", dest="time_in_force", type=str.upper, choices=["GTC", "IOC", "FOK", "GTX"], default="GTC")
    order.add_argument("--client-order-id", default=None)

    transfer = sub.add_parser("transfer", help="Transfer between spot and futures wallets.")
    transfer.add_argument("asset")
    transfer.add_argument("amount")
    transfer.add_argument(
        "--direction",
        choices=["to-futures", "to-spot"],
        default="to-futures",
        help="to-futures (type 1) or to-spot (type 2).",
    )
    return parser


def _dump(data: Any) -> None:
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json", exclude={"raw"})
    print(json.dumps(data, indent=2, default=str))


async def run(args: argparse.Namespace, client: SignedRequestClient) -> int:
    if args.command == "account":
        snapshot = await client.fetch_account_info()
        if snapshot is None:
            print("Failed to fetch account info", file=sys.stderr)
            return 1
        _dump(snapshot)
        return 0
    if args.command == "ticker":
        _dump(await client.fetch_ticker_24hr(args.symbol))
        return 0
    if args.command == "depth":
        _dump(await client.fetch_order_book(args.symbol, args.limit))
        return 0
    if args.command == "order":
        req = OrderRequest(
            symbol=args.symbol,
            side=args.side,
            order_type=args.order_type,
            quantity=args.quantity,
            price=args.price,
            time_in_force=args.time_in_force,
            client_order_id=args.client_order_id,
        )
        result = await client.place_order(req)
        _dump(result)
        return 0 if result.ok else 1
    if args.command == "transfer":
        direction = (
            TransferDirection.SPOT_TO_FUTURES
            if args.direction == "to-futures"
            else TransferDirection.FUTURES_TO_SPOT
        )
        result = await client.transfer(args.asset, args.amount, direction)
        _dump(result)
        return 0 if result.ok else 1
    raise ValueError(f"Unknown command {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "WARNING"))
    args = build_parser().parse_args(argv)
    try:
        credentials = load_credentials()
    except MissingCredentialsError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    client = SignedRequestClient(credentials, settings=ClientSettings.from_env(), base_url=args.base_url)
    return asyncio.run(run(args, client))


if __name__ == "__main__":
    sys.exit(main())
