"""
Request signing for the Aster futures REST API.

Signed endpoints expect the request parameters serialised as a query
string in the order they were added, an HMAC-SHA256 of that exact string
(secret as the key, lowercase hex digest) appended as a final
``signature`` parameter, and the API key in the ``X-MBX-APIKEY`` header.
Because the digest covers the literal bytes, reordering parameters
yields a different signature.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Any, Dict, Mapping
from urllib.parse import urlencode

from .models import Credentials


API_KEY_HEADER = "X-MBX-APIKEY"


def sign(query_string: str, secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``query_string`` keyed by ``secret``."""
    return hmac.new(secret.encode(), query_string.encode(), hashlib.sha256).hexdigest()


def build_query(params: Mapping[str, Any]) -> str:
    """Serialise ``params`` in insertion order as ``k=v`` pairs joined by ``&``."""
    return urlencode([(key, str(value)) for key, value in params.items()])


class QuerySigner:
    """HMAC query-string signing bound to a set of credentials."""

    def __init__(self, credentials: Credentials) -> None:
        self.credentials = credentials

    def signed_query(self, params: Mapping[str, Any]) -> str:
        """Return ``params`` as a query string with ``&signature=<hex>`` appended."""
        query = build_query(params)
        signature = sign(query, self.credentials.api_secret.get_secret_value())
        return f"{query}&signature={signature}"

    def get_headers(self) -> Dict[str, str]:
        return {API_KEY_HEADER: self.credentials.api_key}


__all__ = ["API_KEY_HEADER", "sign", "build_query", "QuerySigner"]
