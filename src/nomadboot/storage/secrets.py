# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/storage/secrets.py

from __future__ import annotations

from nomadboot.errors import SecretFetchError
from .interface import SecretStore


def fetch_token(store: SecretStore, name: str) -> str:
    """Read a bearer token object; surrounding whitespace is dropped, empty is an error."""
    token = store.fetch(name).decode("utf-8", errors="replace").strip()
    if not token:
        raise SecretFetchError(f"secret '{name}' is empty")
    return token
