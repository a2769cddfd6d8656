"""
Client configuration.

Settings are read from environment variables with sensible defaults so
that the client can be configured per deployment without code changes.
Per-symbol precision and minimum-notional rules may be supplied through
``ASTER_SYMBOL_RULES`` as a comma-separated list of
``SYMBOL:quantity_precision:price_precision[:min_notional]`` entries, for
example ``BTCUSDT:3:1:5,ETHUSDT:3:2``.  Symbols without an entry use the
default rules.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://fapi.asterdex.com"


@dataclass(frozen=True)
class SymbolRules:
    quantity_precision: int = 6
    price_precision: int = 8
    min_notional: Decimal = Decimal("6.0")


def format_decimal(value: Any, places: int) -> str:
    """Round ``value`` half-up to ``places`` decimals and return it as fixed-point text.

    The result always carries exactly ``places`` digits after the point,
    e.g. ``format_decimal("1", 6) == "1.000000"``.

    Raises:
        ValueError: if ``value`` is not a finite number.
    """
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}") from None
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    quantum = Decimal(1).scaleb(-places)
    return format(number.quantize(quantum, rounding=ROUND_HALF_UP), "f")


def parse_symbol_rules(raw: str, default: SymbolRules) -> Dict[str, SymbolRules]:
    """Parse an ``ASTER_SYMBOL_RULES`` string into a symbol -> rules mapping.

    Malformed entries are logged and skipped.
    """
    rules: Dict[str, SymbolRules] = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = [p.strip() for p in entry.split(":")]
        try:
            if len(parts) not in (3, 4):
                raise ValueError("expected SYMBOL:qp:pp[:min_notional]")
            min_notional = Decimal(parts[3]) if len(parts) == 4 else default.min_notional
            rules[parts[0].upper()] = SymbolRules(
                quantity_precision=int(parts[1]),
                price_precision=int(parts[2]),
                min_notional=min_notional,
            )
        except (ValueError, InvalidOperation) as exc:
            logger.warning("Ignoring malformed symbol rule %r: %s", entry, exc)
    return rules


@dataclass
class ClientSettings:
    base_url: str = DEFAULT_BASE_URL
    recv_window: int = 5000
    default_rules: SymbolRules = field(default_factory=SymbolRules)
    symbol_rules: Dict[str, SymbolRules] = field(default_factory=dict)
    max_requests_per_minute: int = 1200
    read_retries: int = 3
    request_timeout: float = 10.0
    poll_interval: float = 30.0

    @classmethod
    def from_env(cls) -> "ClientSettings":
        default_rules = SymbolRules(
            quantity_precision=int(os.environ.get("ASTER_QUANTITY_PRECISION", "6")),
            price_precision=int(os.environ.get("ASTER_PRICE_PRECISION", "8")),
            min_notional=Decimal(os.environ.get("ASTER_MIN_NOTIONAL", "6.0")),
        )
        return cls(
            base_url=os.environ.get("ASTER_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            recv_window=int(os.environ.get("ASTER_RECV_WINDOW", "5000")),
            default_rules=default_rules,
            symbol_rules=parse_symbol_rules(os.environ.get("ASTER_SYMBOL_RULES", ""), default_rules),
            max_requests_per_minute=int(os.environ.get("ASTER_MAX_REQUESTS_PER_MINUTE", "1200")),
            read_retries=max(1, int(os.environ.get("ASTER_READ_RETRIES", "3"))),
            request_timeout=float(os.environ.get("ASTER_REQUEST_TIMEOUT", "10")),
            poll_interval=float(os.environ.get("ASTER_POLL_INTERVAL", "30")),
        )

    def rules_for(self, symbol: str) -> SymbolRules:
        return self.symbol_rules.get(symbol.upper(), self.default_rules)


__all__ = [
    "DEFAULT_BASE_URL",
    "SymbolRules",
    "ClientSettings",
    "format_decimal",
    "parse_symbol_rules",
]
