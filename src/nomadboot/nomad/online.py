# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/nomad/online.py

from __future__ import annotations

import logging
from typing import List, Tuple

from nomadboot.config.models import OnlineConfig
from nomadboot.errors import NomadStatusError
from nomadboot.nomad.status import LeaderOracle
from nomadboot.utils.retry import retry

log = logging.getLogger("nomadboot")


class NotOnlineYet(NomadStatusError):
    pass


def wait_online(oracle: LeaderOracle, cfg: OnlineConfig) -> Tuple[str, List[str]]:
    """
    Block until the local agent sees at least `min_peers` raft peers and an
    elected leader. Used as the gate in front of bootstrap and snapshot units.

    Returns (leader, peers); raises RetryError when attempts run out.
    """

    @retry(
        retries=cfg.retries,
        delay=cfg.delay_seconds,
        retry_on=(NomadStatusError,),
        label="online",
    )
    def _check() -> Tuple[str, List[str]]:
        peers = oracle.peers()
        if len(peers) < cfg.min_peers:
            raise NotOnlineYet(f"{len(peers)} peer(s), need {cfg.min_peers}")
        leader = oracle.leader()
        if not leader:
            raise NotOnlineYet("no leader elected")
        return leader, peers

    leader, peers = _check()
    log.info(f"[online] cluster online: leader={leader} peers={len(peers)}")
    return leader, peers
