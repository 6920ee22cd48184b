# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/bootstrap/policies.py

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from nomadboot.nomad.cli import NomadCli
from nomadboot.storage.interface import SecretStore

log = logging.getLogger("nomadboot")


class PolicyApplier:
    """
    Creates Nomad ACL policies that do not exist yet.

    Idempotence is by name only: an existing policy is never diffed or
    updated, even if `<name>.hcl` changed in the bucket since.
    """

    def __init__(self, nomad: NomadCli, store: SecretStore, *, description: str = ""):
        self.nomad = nomad
        self.store = store
        self.description = description

    def apply(self, name: str) -> bool:
        """Returns True when the policy was created by this call."""
        if self.nomad.policy_exists(name):
            log.info(f"[policy] {name} already present")
            return False

        with tempfile.TemporaryDirectory(prefix="nomadboot-policy-") as tmp:
            path = self.store.get(f"{name}.hcl", Path(tmp) / f"{name}.hcl")
            os.chmod(path, 0o600)
            self.nomad.policy_apply(name, path, self.description)

        log.info(f"[policy] {name} created")
        return True
