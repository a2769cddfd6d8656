"""
secrets_manager
================

Loading of exchange credentials without compiling them into source.

At runtime, secrets may be loaded from environment variables, a mounted
file, or an external secrets manager such as AWS Secrets Manager or
HashiCorp Vault.  The backend is chosen by ``SECRETS_BACKEND`` (``env``
by default).  For the env backend, if ``{name}_FILE`` is set the secret is
read from that file, which lets operators mount secrets into containers
without leaking them into the environment.

Example usage::

    from trader.src.trader.secrets_manager import load_credentials

    credentials = load_credentials()
    client = SignedRequestClient(credentials)
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .models import Credentials

try:
    import boto3  # type: ignore
except ImportError:
    boto3 = None  # type: ignore


logger = logging.getLogger(__name__)

API_KEY_NAME = "ASTER_API_KEY"
API_SECRET_NAME = "ASTER_API_SECRET"


class MissingCredentialsError(RuntimeError):
    """Raised when the API key or secret cannot be found in any backend."""


class BaseSecretsManager:
    """Abstract base class for secrets managers."""

    def get_secret(self, name: str) -> Optional[str]:  # pragma: no cover - override
        """Return the secret value for ``name`` or ``None`` if unavailable."""
        raise NotImplementedError


class EnvFileSecretsManager(BaseSecretsManager):
    """
    Loads secrets from environment variables and optional ``*_FILE`` paths.

    If both ``{name}`` and ``{name}_FILE`` are set, the file takes
    precedence.  Relative file paths are resolved against ``base_path``.
    """

    def __init__(self, base_path: Optional[Path] = None) -> None:
        self.base_path = base_path
        self._cache: Dict[str, Optional[str]] = {}

    def get_secret(self, name: str) -> Optional[str]:
        if name in self._cache:
            return self._cache[name]

        file_path = os.getenv(f"{name}_FILE")
        if file_path:
            path = Path(file_path)
            if not path.is_absolute() and self.base_path is not None:
                path = self.base_path / path
            try:
                value: Optional[str] = path.read_text(encoding="utf-8").strip()
            except OSError as exc:
                logger.warning("Failed to read secret file for %s: %s", name, exc)
                value = None
        else:
            value = os.getenv(name)

        self._cache[name] = value
        return value


class AwsSecretsManager(BaseSecretsManager):
    """
    Secrets manager backend for AWS Secrets Manager.

    Secrets are looked up as ``{prefix}/{name}`` where ``prefix`` comes from
    ``AWS_SECRETS_PREFIX``.  The plain ``SecretString`` is returned and
    cached per name.
    """

    def __init__(self, *, prefix: Optional[str] = None, region_name: Optional[str] = None) -> None:
        if boto3 is None:
            raise RuntimeError(
                "boto3 is required for AwsSecretsManager; please install with `pip install boto3`"
            )
        self.prefix = prefix or os.getenv("AWS_SECRETS_PREFIX", "")
        self.region_name = region_name or os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
        self._cache: Dict[str, Optional[str]] = {}
        self._client: Any | None = None

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("secretsmanager", region_name=self.region_name)
        return self._client

    def get_secret(self, name: str) -> Optional[str]:
        if name in self._cache:
            return self._cache[name]
        secret_id = f"{self.prefix}/{name}" if self.prefix else name
        try:
            response = self.client.get_secret_value(SecretId=secret_id)
            value = response.get("SecretString")
        except Exception as exc:
            logger.warning("AWS secret lookup failed for %s: %s", secret_id, exc)
            value = None
        self._cache[name] = value
        return value


class VaultSecretsManager(BaseSecretsManager):
    """Secrets manager backend for HashiCorp Vault (KV v2).

    If ``VAULT_ADDR`` and ``VAULT_TOKEN`` are set, the secret is read from
    ``{VAULT_ADDR}/v1/secret/data/{prefix}/{name}`` and expected under
    ``data.data.value``.  Otherwise, or if the request fails, lookups fall
    back to :class:`EnvFileSecretsManager`.
    """

    def __init__(self, *, prefix: Optional[str] = None) -> None:
        self.prefix = prefix or os.getenv("VAULT_PREFIX", "")
        self.fallback = EnvFileSecretsManager(base_path=Path(os.getenv("SECRETS_BASE_PATH", "/")))

    def get_secret(self, name: str) -> Optional[str]:
        addr = os.getenv("VAULT_ADDR")
        token = os.getenv("VAULT_TOKEN")
        if not (addr and token):
            return self.fallback.get_secret(name)
        path = f"{self.prefix}/{name}" if self.prefix else name
        url = f"{addr.rstrip('/')}/v1/secret/data/{path}"
        import urllib.error
        import urllib.request

        req = urllib.request.Request(url, headers={"X-Vault-Token": token})
        try:
            with urllib.request.urlopen(req, timeout=5) as resp:  # nosec B310
                data = json.loads(resp.read().decode("utf-8"))
            return data.get("data", {}).get("data", {}).get("value")
        except (urllib.error.URLError, OSError, ValueError) as exc:
            logger.warning("Vault lookup failed for %s, using environment: %s", path, exc)
            return self.fallback.get_secret(name)


def get_default_secrets_manager() -> BaseSecretsManager:
    """
    Return the secrets manager selected by ``SECRETS_BACKEND``:

    * ``env`` (default) - environment variables and ``*_FILE`` paths.
    * ``aws`` - AWS Secrets Manager; falls back to ``env`` if boto3 is missing.
    * ``vault`` - HashiCorp Vault with ``env`` fallback.
    """
    backend = os.getenv("SECRETS_BACKEND", "env").lower()
    base_path = Path(os.getenv("SECRETS_BASE_PATH", "/"))
    if backend == "aws":
        try:
            return AwsSecretsManager()
        except RuntimeError as exc:
            logger.warning("AWS secrets backend unavailable (%s); using environment", exc)
            return EnvFileSecretsManager(base_path=base_path)
    if backend == "vault":
        return VaultSecretsManager(prefix=os.getenv("VAULT_PREFIX"))
    return EnvFileSecretsManager(base_path=base_path)


def load_credentials(manager: Optional[BaseSecretsManager] = None) -> Credentials:
    """Resolve the exchange API key and secret into :class:`Credentials`.

    Raises:
        MissingCredentialsError: if either value is missing or empty.
    """
    manager = manager or get_default_secrets_manager()
    api_key = manager.get_secret(API_KEY_NAME)
    api_secret = manager.get_secret(API_SECRET_NAME)
    missing = [n for n, v in ((API_KEY_NAME, api_key), (API_SECRET_NAME, api_secret)) if not v]
    if missing:
        raise MissingCredentialsError(f"Missing credentials: {', '.join(missing)}")
    return Credentials(api_key=api_key, api_secret=api_secret)


__all__ = [
    "API_KEY_NAME",
    "API_SECRET_NAME",
    "MissingCredentialsError",
    "BaseSecretsManager",
    "EnvFileSecretsManager",
    "AwsSecretsManager",
    "VaultSecretsManager",
    "get_default_secrets_manager",
    "load_credentials",
]
