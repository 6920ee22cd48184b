# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/nomad/status.py

from __future__ import annotations

import logging
from typing import Any, List, Optional

import requests

from nomadboot.config.models import NomadConfig
from nomadboot.errors import NomadStatusError
from nomadboot.utils.addresses import same_endpoint

log = logging.getLogger("nomadboot")


class LeaderOracle:
    """
    Reads /v1/status/* from the local agent over mutual TLS.

    is_leader() never raises: a failed query is reported as "not leader".
    No retries at this layer; periodic re-invocation handles that.
    """

    def __init__(self, cfg: NomadConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.session.cert = (str(cfg.tls.cert_file), str(cfg.tls.key_file))
        self.session.verify = str(cfg.tls.ca_file)

    def _get(self, path: str) -> Any:
        url = f"{self.cfg.addr.rstrip('/')}/{path.lstrip('/')}"
        # missing CA/cert/key files surface as a plain OSError from the adapter
        try:
            r = self.session.get(url, timeout=self.cfg.timeout_seconds)
        except (requests.RequestException, OSError) as e:
            raise NomadStatusError(f"GET {url} failed: {e}") from e
        if r.status_code != 200:
            raise NomadStatusError(f"GET {url} failed: {r.status_code} {r.text}")
        try:
            return r.json()
        except ValueError as e:
            raise NomadStatusError(f"GET {url} returned non-JSON body: {r.text!r}") from e

    def leader(self) -> str:
        """Address of the current leader, e.g. "10.0.1.12:4647"; "" when there is none."""
        data = self._get("/v1/status/leader")
        if not isinstance(data, str):
            raise NomadStatusError(f"unexpected leader payload: {data!r}")
        return data

    def peers(self) -> List[str]:
        data = self._get("/v1/status/peers")
        if not isinstance(data, list):
            raise NomadStatusError(f"unexpected peers payload: {data!r}")
        return [str(p) for p in data]

    def is_leader(self, self_address: str) -> bool:
        try:
            current = self.leader()
        except NomadStatusError as e:
            log.warning(f"[leader] cannot determine leader, assuming not leader: {e}")
            return False

        if not current:
            log.info("[leader] cluster has no leader yet")
            return False

        leading = same_endpoint(current, self_address)
        log.info(f"[leader] leader={current} self={self_address} leading={leading}")
        return leading
