# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/bootstrap/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple


class ClusterState(str, Enum):
    NOT_BOOTSTRAPPED = "not_bootstrapped"
    BOOTSTRAPPED = "bootstrapped"


class StageStatus(str, Enum):
    OK = "ok"              # stage changed something
    SKIPPED = "skipped"    # nothing to do
    FAILED = "failed"


class Outcome(str, Enum):
    NOT_LEADER = "not_leader"
    CONFIGURED = "configured"
    FAILED = "failed"


# A stage body returns (status, detail); raising marks the stage FAILED.
StageFn = Callable[[], Tuple[StageStatus, str]]


@dataclass(frozen=True)
class Stage:
    name: str
    run: StageFn


@dataclass
class StageResult:
    name: str
    status: StageStatus
    detail: str = ""
    error: Optional[str] = None
    duration_ms: int = 0


@dataclass
class BootstrapResult:
    outcome: Outcome
    state: Optional[ClusterState] = None
    bootstrapped_now: bool = False
    stages: List[StageResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome != Outcome.FAILED

    def count(self, status: StageStatus) -> int:
        return sum(1 for s in self.stages if s.status == status)

    def summary(self) -> str:
        return (
            f"outcome={self.outcome.value} "
            f"OK={self.count(StageStatus.OK)} "
            f"SKIPPED={self.count(StageStatus.SKIPPED)} "
            f"FAILED={self.count(StageStatus.FAILED)}"
        )
