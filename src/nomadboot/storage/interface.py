# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/storage/interface.py

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class SecretStore(Protocol):
    """
    Contract for reading (and, for the snapshot job, writing) objects under
    the node's `<region>/<role>/nomad/` prefix.

    fetch() raises ObjectNotFound for a missing object and SecretFetchError
    for anything else; callers decide whether absence is fatal.
    """

    def fetch(self, path: str) -> bytes: ...

    def get(self, path: str, dest: Path) -> Path: ...

    def put(self, path: str, data: bytes) -> None: ...
