# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/nomad/cli.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from nomadboot.config.models import NomadConfig
from nomadboot.errors import BootstrapError, CommandError
from nomadboot.execution.runner import CommandRunner, output_text

log = logging.getLogger("nomadboot")

ALREADY_BOOTSTRAPPED_MARKER = "bootstrap already done"


class NomadCli:
    """
    A pragmatic wrapper around the `nomad` CLI for the ACL and operator calls.
    Connection settings and the management token travel in the child env only.
    """

    def __init__(self, cfg: NomadConfig, token: Optional[str] = None, runner: Optional[CommandRunner] = None):
        self.cfg = cfg
        self.token = token
        env = {
            "NOMAD_ADDR": cfg.addr,
            "NOMAD_CACERT": str(cfg.tls.ca_file),
            "NOMAD_CLIENT_CERT": str(cfg.tls.cert_file),
            "NOMAD_CLIENT_KEY": str(cfg.tls.key_file),
        }
        if token:
            env["NOMAD_TOKEN"] = token
        self.runner = runner or CommandRunner(binary=cfg.binary, env=env, label="nomad")

    # ------------------------- ACL -------------------------

    def token_self(self) -> bool:
        """True when the current token is accepted, i.e. ACLs are bootstrapped."""
        cp = self.runner.run(["acl", "token", "self"], allow_rc={0, 1})
        if cp.returncode != 0:
            log.debug(f"[nomad] token self rejected: {output_text(cp).strip()}")
        return cp.returncode == 0

    def acl_bootstrap(self, secret: str) -> bool:
        """
        Submit our pre-generated management secret to the bootstrap endpoint.

        Returns True when this call performed the bootstrap and False when
        another server got there first.
        """
        cp = self.runner.run(["acl", "bootstrap", "-"], allow_rc={0, 1}, input=secret)
        if cp.returncode == 0:
            return True
        out = output_text(cp)
        if ALREADY_BOOTSTRAPPED_MARKER in out.lower():
            return False
        raise BootstrapError(f"nomad acl bootstrap failed (rc={cp.returncode}): {out.strip()}")

    def policy_exists(self, name: str) -> bool:
        cp = self.runner.run(["acl", "policy", "info", name], allow_rc={0, 1})
        if cp.returncode == 0:
            return True
        out = output_text(cp)
        if "not found" in out.lower():
            return False
        raise CommandError(f"[nomad] cannot look up policy {name}: {out.strip()}", returncode=cp.returncode)

    def policy_apply(self, name: str, rules_file: Path, description: str = "") -> None:
        args = ["acl", "policy", "apply"]
        if description:
            args += ["-description", description]
        self.runner.run(args + [name, str(rules_file)])

    # ------------------------- operator -------------------------

    def snapshot_save(self, dest: Path) -> Path:
        self.runner.run(["operator", "snapshot", "save", str(dest)])
        return dest
