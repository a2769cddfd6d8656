"""Service layer for the trading client.

This package exposes long-running services built on top of the signed
client, currently the account balance poller.
"""

from .account_poller import AccountPoller  # noqa: F401
