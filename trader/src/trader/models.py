"""
Domain models for trading entities using Pydantic.  These models
provide validation and serialization for credentials, orders, transfers
and account snapshots exchanged with the Aster futures REST API.
"""

from __future__ import annotations

from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


QUOTE_ASSET = "USDT"


class Credentials(BaseModel):
    """API key and secret used to authenticate signed requests.

    The secret is held as a :class:`~pydantic.SecretStr` so it never shows
    up in ``repr()`` output or log lines.
    """

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1, description="Value sent in the X-MBX-APIKEY header")
    api_secret: SecretStr = Field(..., description="HMAC key used to sign query strings")


class OrderRequest(BaseModel):
    """Request to submit a new futures order."""

    symbol: str = Field(..., min_length=1, description="The instrument symbol, e.g. BTCUSDT")
    side: Literal["BUY", "SELL"] = Field(..., description="Order side")
    order_type: Literal["LIMIT", "MARKET"] = Field("LIMIT", description="Order type")
    quantity: Optional[Decimal] = Field(None, description="Order quantity in base asset")
    price: Optional[Decimal] = Field(None, description="Limit price, required for LIMIT orders")
    time_in_force: Literal["GTC", "IOC", "FOK", "GTX"] = "GTC"
    last_price: Optional[Decimal] = Field(
        None, description="Reference price used to value MARKET orders"
    )
    client_order_id: Optional[str] = Field(
        None,
        pattern=r"^[.A-Za-z0-9:/_-]{1,36}$",
        description="Idempotency key sent as newClientOrderId",
    )

    @field_validator("symbol", "side", "order_type", "time_in_force", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class OrderResult(BaseModel):
    """Tagged outcome of :meth:`SignedRequestClient.place_order`.

    ``ok`` is true only when the exchange accepted the order.  On failure
    ``error_kind`` is one of ``validation``, ``duplicate``, ``transport`` or
    ``exchange`` and ``message`` holds the text to show the user.
    """

    ok: bool
    status: str
    symbol: str
    side: str
    client_order_id: Optional[str] = None
    order_id: Optional[int] = None
    notional: Optional[Decimal] = None
    message: str = ""
    error_kind: Optional[str] = None
    code: Optional[int] = None
    raw: Dict[str, Any] = Field(default_factory=dict)


class TransferDirection(IntEnum):
    """Transfer ``type`` codes understood by ``/fapi/v1/transfer``."""

    SPOT_TO_FUTURES = 1
    FUTURES_TO_SPOT = 2


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


class AssetBalance(BaseModel):
    asset: str
    wallet_balance: Optional[float] = None
    available_balance: Optional[float] = None

    @property
    def preferred_balance(self) -> float:
        """Available margin if reported, otherwise the wallet balance."""
        if self.available_balance is not None:
            return self.available_balance
        if self.wallet_balance is not None:
            return self.wallet_balance
        return 0.0


class AccountSnapshot(BaseModel):
    """Balances reported by ``/fapi/v1/account`` at one point in time."""

    assets: List[AssetBalance] = Field(default_factory=list)
    total_wallet_balance: float = 0.0
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> "AccountSnapshot":
        """Build a snapshot from the raw account payload.

        ``total_wallet_balance`` is the USDT entry of ``assets`` (matched
        case-insensitively), preferring ``availableBalance`` over
        ``walletBalance``; an ``assets`` list with no USDT entry yields 0.
        Only when there is no ``assets`` list at all is the top-level
        ``totalWalletBalance`` used.

        Raises:
            ValueError: if the payload is not an object or a balance is not numeric.
        """
        if not isinstance(data, dict):
            raise ValueError("Account payload must be a JSON object")
        assets: List[AssetBalance] = []
        raw_assets = data.get("assets")
        if not isinstance(raw_assets, list):
            total = _optional_float(data.get("totalWalletBalance")) or 0.0
            return cls(assets=assets, total_wallet_balance=total, raw=data)
        for item in raw_assets:
            if not isinstance(item, dict) or not item.get("asset"):
                continue
            assets.append(
                AssetBalance(
                    asset=str(item["asset"]),
                    wallet_balance=_optional_float(item.get("walletBalance")),
                    available_balance=_optional_float(item.get("availableBalance")),
                )
            )
        quote = next((a for a in assets if a.asset.upper() == QUOTE_ASSET), None)
        total = quote.preferred_balance if quote is not None else 0.0
        return cls(assets=assets, total_wallet_balance=total, raw=data)

    def balance_of(self, asset: str) -> Optional[AssetBalance]:
        asset = asset.upper()
        for entry in self.assets:
            if entry.asset.upper() == asset:
                return entry
        return None


class TransferResult(BaseModel):
    """Tagged outcome of :meth:`SignedRequestClient.transfer`."""

    ok: bool
    asset: str
    amount: str
    direction: TransferDirection
    tran_id: Optional[int] = None
    message: str = ""
    error_kind: Optional[str] = None
    code: Optional[int] = None
    snapshot: Optional[AccountSnapshot] = None


__all__ = [
    "QUOTE_ASSET",
    "Credentials",
    "OrderRequest",
    "OrderResult",
    "TransferDirection",
    "AssetBalance",
    "AccountSnapshot",
    "TransferResult",
]
