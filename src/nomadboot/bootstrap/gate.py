# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/bootstrap/gate.py

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

from nomadboot.config.models import BootstrapConfig
from nomadboot.federation.configurator import FederationConfigurator, build_federation
from nomadboot.nomad.cli import NomadCli
from nomadboot.nomad.status import LeaderOracle
from nomadboot.observers.dispatcher import EventBus
from nomadboot.observers.events import (
    new_ctx,
    now_ts,
    AclBootstrapChecked,
    AclBootstrapPerformed,
    BootstrapSummary,
    LeadershipChecked,
    StageFailed,
    StageSkipped,
    StageStarted,
    StageSucceeded,
)
from nomadboot.storage.interface import SecretStore
from nomadboot.storage.secrets import fetch_token
from .keystore import KeystoreRestorer
from .models import (
    BootstrapResult,
    ClusterState,
    Outcome,
    Stage,
    StageResult,
    StageStatus,
)
from .policies import PolicyApplier

log = logging.getLogger("nomadboot")

NomadFactory = Callable[[str], NomadCli]
FederationFactory = Callable[[], FederationConfigurator]


class BootstrapGate:
    """
    Leader-gated ACL bootstrap followed by the idempotent configuration
    pipeline (keystore, policies, federation).

    Non-leaders return immediately without touching the secrets bucket or
    the cluster. On the leader the ACL bootstrap is attempted only when the
    management token is not accepted yet; "already done" from another
    server is a normal outcome. Configuration stages run in a fixed order
    and stop at the first failure. The bootstrap itself is never undone.
    """

    def __init__(
        self,
        cfg: BootstrapConfig,
        *,
        store: SecretStore,
        oracle: LeaderOracle,
        nomad_factory: Optional[NomadFactory] = None,
        federation_factory: Optional[FederationFactory] = None,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
    ):
        self.cfg = cfg
        self.store = store
        self.oracle = oracle
        self.nomad_factory = nomad_factory or (lambda token: NomadCli(cfg.nomad, token))
        self.federation_factory = federation_factory or (lambda: build_federation(cfg, store))
        self.bus = bus or EventBus()
        self.run_ctx = new_ctx(node=cfg.self_address, run_id=run_id)

    def _ctx(self):
        return {**self.run_ctx, "ts": now_ts()}

    # ----------------------------
    # Entry point
    # ----------------------------
    def run(self) -> BootstrapResult:
        leading = self.oracle.is_leader(self.cfg.self_address)
        self.bus.emit(LeadershipChecked(leader=leading, **self._ctx()))
        if not leading:
            log.info("[bootstrap] not the leader, nothing to do")
            return self._finish(BootstrapResult(outcome=Outcome.NOT_LEADER))

        # Fetch failures are fatal and propagate to the CLI.
        token = fetch_token(self.store, self.cfg.token_name)
        nomad = self.nomad_factory(token)

        state, bootstrapped_now = self._ensure_bootstrapped(nomad, token)
        result = BootstrapResult(
            outcome=Outcome.CONFIGURED,
            state=state,
            bootstrapped_now=bootstrapped_now,
        )

        for stage in self.stages(nomad):
            sr = self._run_stage(stage)
            result.stages.append(sr)
            if sr.status == StageStatus.FAILED:
                result.outcome = Outcome.FAILED
                log.error(
                    f"[bootstrap] stage {stage.name} failed; ACL bootstrap is kept, "
                    "later stages run on the next invocation"
                )
                break

        return self._finish(result)

    # ----------------------------
    # ACL bootstrap
    # ----------------------------
    def _ensure_bootstrapped(self, nomad: NomadCli, token: str) -> Tuple[ClusterState, bool]:
        """
        Classify the cluster and bootstrap it when needed.

        Returns the state observed before any action and whether this call
        performed the bootstrap.
        """
        bootstrapped = nomad.token_self()
        state = ClusterState.BOOTSTRAPPED if bootstrapped else ClusterState.NOT_BOOTSTRAPPED
        self.bus.emit(AclBootstrapChecked(bootstrapped=bootstrapped, **self._ctx()))

        if bootstrapped:
            log.info("[bootstrap] ACLs already bootstrapped, re-applying configuration")
            return state, False

        performed = nomad.acl_bootstrap(token)
        self.bus.emit(AclBootstrapPerformed(performed=performed, **self._ctx()))
        if performed:
            log.info("[bootstrap] ACL bootstrap performed")
        else:
            log.info("[bootstrap] ACL bootstrap already done by another server")
        return state, performed

    # ----------------------------
    # Configuration pipeline
    # ----------------------------
    def stages(self, nomad: NomadCli) -> List[Stage]:
        keystore = KeystoreRestorer(self.store, self.cfg.keystore_dir, self.cfg.keystore_object)
        applier = PolicyApplier(nomad, self.store, description=self.cfg.policy_description)

        pipeline = [Stage("keystore", lambda: _keystore_stage(keystore))]
        for name in self.cfg.policies:
            pipeline.append(Stage(f"policy:{name}", lambda n=name: _policy_stage(applier, n)))
        pipeline.append(Stage("federation", self._federation_stage))
        return pipeline

    def _federation_stage(self) -> Tuple[StageStatus, str]:
        if not (self.cfg.consul.enabled or self.cfg.vault.enabled):
            return StageStatus.SKIPPED, "consul and vault integrations disabled"
        created = self.federation_factory().configure()
        if not created:
            return StageStatus.SKIPPED, "already configured"
        return StageStatus.OK, ", ".join(created)

    def _run_stage(self, stage: Stage) -> StageResult:
        self.bus.emit(StageStarted(stage=stage.name, **self._ctx()))
        t0 = time.time()
        try:
            status, detail = stage.run()
        except Exception as e:
            log.error(f"[{stage.name}] {e}")
            self.bus.emit(StageFailed(stage=stage.name, error=str(e), **self._ctx()))
            return StageResult(name=stage.name, status=StageStatus.FAILED, error=str(e))

        duration_ms = int((time.time() - t0) * 1000)
        if status == StageStatus.SKIPPED:
            self.bus.emit(StageSkipped(stage=stage.name, reason=detail, **self._ctx()))
        else:
            self.bus.emit(StageSucceeded(stage=stage.name, duration_ms=duration_ms, detail=detail, **self._ctx()))
        log.info(f"[{stage.name}] {status.value}{': ' + detail if detail else ''}")
        return StageResult(name=stage.name, status=status, detail=detail, duration_ms=duration_ms)

    def _finish(self, result: BootstrapResult) -> BootstrapResult:
        self.bus.emit(
            BootstrapSummary(
                outcome=result.outcome.value,
                ok=result.count(StageStatus.OK),
                skipped=result.count(StageStatus.SKIPPED),
                failed=result.count(StageStatus.FAILED),
                **self._ctx(),
            )
        )
        log.info(f"[bootstrap] {result.summary()}")
        return result


def _keystore_stage(restorer: KeystoreRestorer) -> Tuple[StageStatus, str]:
    restored = restorer.restore()
    if restored is None:
        return StageStatus.SKIPPED, "no keystore backup yet"
    if not restored:
        return StageStatus.SKIPPED, "all keystore files already present"
    return StageStatus.OK, f"restored {len(restored)} file(s)"


def _policy_stage(applier: PolicyApplier, name: str) -> Tuple[StageStatus, str]:
    if applier.apply(name):
        return StageStatus.OK, "created"
    return StageStatus.SKIPPED, "already present"
