# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/observers/events.py

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single invocation
    node: str         # self address of the emitting server

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def now_ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(node: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": now_ts(),
        "run_id": run_id or str(uuid.uuid4()),
        "node": node,
    }


# ----- Gate -----

@dataclass(frozen=True)
class LeadershipChecked(BaseEvent):
    leader: bool

@dataclass(frozen=True)
class AclBootstrapChecked(BaseEvent):
    bootstrapped: bool

@dataclass(frozen=True)
class AclBootstrapPerformed(BaseEvent):
    performed: bool   # False when another server won the race


# ----- Configuration stages -----

@dataclass(frozen=True)
class StageStarted(BaseEvent):
    stage: str

@dataclass(frozen=True)
class StageSucceeded(BaseEvent):
    stage: str
    duration_ms: int
    detail: str = ""

@dataclass(frozen=True)
class StageSkipped(BaseEvent):
    stage: str
    reason: str

@dataclass(frozen=True)
class StageFailed(BaseEvent):
    stage: str
    error: str


# ----- Summary -----

@dataclass(frozen=True)
class BootstrapSummary(BaseEvent):
    outcome: str      # "not_leader" | "configured" | "failed"
    ok: int
    skipped: int
    failed: int
