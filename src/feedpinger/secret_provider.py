"""
Name-indexed secret lookup.

Sites reference their IndexNow key indirectly (`indexNowKeyEnv`), so the
processor asks a SecretProvider for the value at run time. The default
provider reads the process environment, which main.py populates from .env
via python-dotenv.
"""

import os
from collections.abc import Mapping
from typing import Protocol


class SecretProvider(Protocol):
    def get(self, name: str) -> str | None: ...


class EnvSecretProvider:
    """Resolve secrets from os.environ."""

    def get(self, name: str) -> str | None:
        if not name:
            return None
        return os.environ.get(name) or None


class StaticSecretProvider:
    """Resolve secrets from a fixed mapping (tests, one-off runs)."""

    def __init__(self, secrets: Mapping[str, str] | None = None):
        self._secrets = dict(secrets or {})

    def get(self, name: str) -> str | None:
        return self._secrets.get(name) or None
