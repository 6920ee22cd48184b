# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/federation/vault.py

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from nomadboot.config.models import VaultFederationConfig
from nomadboot.errors import CommandError, FederationError
from nomadboot.execution.runner import CommandRunner, output_text

# `vault read` / `vault policy read` exit with 2 when the path is empty.
_VAULT_MISSING_RC = {0, 2}


class VaultCli:
    """Wrapper around the `vault` CLI calls needed to trust Nomad as a JWT issuer."""

    def __init__(self, cfg: VaultFederationConfig, token: str, runner: Optional[CommandRunner] = None):
        self.cfg = cfg
        env = {"VAULT_ADDR": cfg.addr, "VAULT_TOKEN": token}
        if cfg.ca_file:
            env["VAULT_CACERT"] = str(cfg.ca_file)
        self.runner = runner or CommandRunner(binary=cfg.binary, env=env, label="vault")

    def _json(self, cp, what: str) -> Any:
        try:
            return json.loads(cp.stdout or "null")
        except ValueError as e:
            raise FederationError(f"[vault] unexpected {what} output: {cp.stdout!r}") from e

    # ------------------------- auth mounts -------------------------

    def auth_mounts(self) -> Dict[str, Any]:
        cp = self.runner.run(["auth", "list", "-format=json"])
        return self._json(cp, "auth list") or {}

    def auth_enable(self, path: str, method_type: str, description: str = "") -> None:
        args = ["auth", "enable", f"-path={path}"]
        if description:
            args.append(f"-description={description}")
        self.runner.run(args + [method_type])

    # ------------------------- generic kv-style paths -------------------------

    def read(self, path: str) -> Optional[Dict[str, Any]]:
        cp = self.runner.run(["read", "-format=json", path], allow_rc=_VAULT_MISSING_RC)
        if cp.returncode == 0:
            return (self._json(cp, f"read {path}") or {}).get("data") or {}
        out = output_text(cp)
        if "no value found" in out.lower():
            return None
        raise CommandError(f"[vault] cannot read {path}: {out.strip()}", returncode=cp.returncode)

    def write(self, path: str, data: Dict[str, Any]) -> None:
        with tempfile.TemporaryDirectory(prefix="nomadboot-vault-") as tmp:
            body = Path(tmp) / "body.json"
            body.write_text(json.dumps(data, indent=2))
            self.runner.run(["write", path, f"@{body}"])

    # ------------------------- policies -------------------------

    def policy_exists(self, name: str) -> bool:
        cp = self.runner.run(["policy", "read", name], allow_rc=_VAULT_MISSING_RC)
        if cp.returncode == 0:
            return True
        out = output_text(cp)
        if "no policy named" in out.lower():
            return False
        raise CommandError(f"[vault] cannot read policy {name}: {out.strip()}", returncode=cp.returncode)

    def policy_write(self, name: str, text: str) -> None:
        with tempfile.TemporaryDirectory(prefix="nomadboot-vault-") as tmp:
            path = Path(tmp) / f"{name}.hcl"
            path.write_text(text)
            self.runner.run(["policy", "write", name, str(path)])
