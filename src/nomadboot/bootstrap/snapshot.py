# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/bootstrap/snapshot.py

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from nomadboot.config.models import BootstrapConfig
from nomadboot.nomad.cli import NomadCli
from nomadboot.nomad.status import LeaderOracle
from nomadboot.storage.interface import SecretStore
from nomadboot.storage.secrets import fetch_token
from .keystore import KeystoreRestorer

log = logging.getLogger("nomadboot")


@dataclass
class SnapshotResult:
    leader: bool
    uploaded: List[str] = field(default_factory=list)


class SnapshotJob:
    """
    Periodic backup run from a systemd timer on every server.

    Only the leader does anything: it saves a raft snapshot and uploads it
    twice (timestamped and `latest.snap`), then uploads the keystore archive
    that KeystoreRestorer reads back during bootstrap.
    """

    def __init__(
        self,
        cfg: BootstrapConfig,
        *,
        store: SecretStore,
        oracle: LeaderOracle,
        nomad_factory: Optional[Callable[[str], NomadCli]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.cfg = cfg
        self.store = store
        self.oracle = oracle
        self.nomad_factory = nomad_factory or (lambda token: NomadCli(cfg.nomad, token))
        self.now = now or (lambda: datetime.now(timezone.utc))

    def run(self) -> SnapshotResult:
        if not self.oracle.is_leader(self.cfg.self_address):
            log.info("[snapshot] not the leader, skipping")
            return SnapshotResult(leader=False)

        token = fetch_token(self.store, self.cfg.token_name)
        nomad = self.nomad_factory(token)
        result = SnapshotResult(leader=True)

        prefix = self.cfg.snapshot_prefix.strip("/")
        stamp = self.now().strftime("%Y%m%dT%H%M%SZ")

        with tempfile.TemporaryDirectory(prefix="nomadboot-snapshot-") as tmp:
            snap = nomad.snapshot_save(Path(tmp) / "state.snap")
            data = snap.read_bytes()

        for name in (f"{prefix}/{stamp}.snap", f"{prefix}/latest.snap"):
            self.store.put(name, data)
            result.uploaded.append(name)

        keystore = KeystoreRestorer(self.store, self.cfg.keystore_dir, self.cfg.keystore_object)
        archive = keystore.archive()
        if archive is None:
            log.warning(f"[snapshot] keystore {self.cfg.keystore_dir} is empty, not uploading")
        else:
            self.store.put(self.cfg.keystore_object, archive)
            result.uploaded.append(self.cfg.keystore_object)

        log.info(f"[snapshot] uploaded {len(result.uploaded)} object(s)")
        return result
