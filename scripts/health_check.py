#!/usr/bin/env python
"""Simple health check utility.

This script prints whether the configuration and secrets the client
needs are present in the environment.  Operators can run it before
starting the account worker or the CLI.  Secret values are never
printed, only whether they are set.
"""

from __future__ import annotations

import os
from typing import Dict, List


KEYS: List[str] = [
    "ASTER_API_KEY",
    "ASTER_API_SECRET",
    "ASTER_BASE_URL",
    "ASTER_SYMBOL_RULES",
    "SECRETS_BACKEND",
    "PROMETHEUS_PORT",
    "LOG_LEVEL",
]


def collect_status() -> Dict[str, str]:
    status: Dict[str, str] = {}
    for key in KEYS:
        present = bool(os.environ.get(key) or os.environ.get(f"{key}_FILE"))
        status[key] = "set" if present else "missing"
    return status


def main() -> None:
    print("Health Check:")
    for key, state in collect_status().items():
        print(f"{key}: {state}")


if __name__ == "__main__":
    main()
