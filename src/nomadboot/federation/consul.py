# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/federation/consul.py

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from nomadboot.config.models import ConsulFederationConfig
from nomadboot.errors import CommandError, FederationError
from nomadboot.execution.runner import CommandRunner, output_text


class ConsulCli:
    """Wrapper around the `consul acl` subcommands used for workload identity."""

    def __init__(self, cfg: ConsulFederationConfig, token: str, runner: Optional[CommandRunner] = None):
        self.cfg = cfg
        env = {"CONSUL_HTTP_ADDR": cfg.addr, "CONSUL_HTTP_TOKEN": token}
        if cfg.ca_file:
            env["CONSUL_CACERT"] = str(cfg.ca_file)
        self.runner = runner or CommandRunner(binary=cfg.binary, env=env, label="consul")

    def _exists(self, kind: str, name: str) -> bool:
        cp = self.runner.run(["acl", kind, "read", "-name", name], allow_rc={0, 1})
        if cp.returncode == 0:
            return True
        out = output_text(cp)
        if "not found" in out.lower():
            return False
        raise CommandError(f"[consul] cannot read {kind} {name}: {out.strip()}", returncode=cp.returncode)

    def auth_method_exists(self, name: str) -> bool:
        return self._exists("auth-method", name)

    def policy_exists(self, name: str) -> bool:
        return self._exists("policy", name)

    def role_exists(self, name: str) -> bool:
        return self._exists("role", name)

    def auth_method_create(
        self,
        *,
        name: str,
        method_type: str,
        config: Dict[str, Any],
        description: str = "",
        max_token_ttl: str = "",
    ) -> None:
        with tempfile.TemporaryDirectory(prefix="nomadboot-consul-") as tmp:
            path = Path(tmp) / "auth-method.json"
            path.write_text(json.dumps(config, indent=2))
            args = ["acl", "auth-method", "create", "-name", name, "-type", method_type]
            if description:
                args += ["-description", description]
            if max_token_ttl:
                args += ["-max-token-ttl", max_token_ttl]
            self.runner.run(args + ["-config", f"@{path}"])

    def binding_rules(self, method: str) -> List[Dict[str, Any]]:
        cp = self.runner.run(["acl", "binding-rule", "list", "-method", method, "-format", "json"])
        text = (cp.stdout or "").strip()
        if not text:
            return []
        try:
            data = json.loads(text)
        except ValueError as e:
            raise FederationError(f"[consul] unexpected binding-rule list output: {text!r}") from e
        return data or []

    def binding_rule_create(
        self,
        *,
        method: str,
        bind_type: str,
        bind_name: str,
        selector: str,
        description: str = "",
    ) -> None:
        args = [
            "acl", "binding-rule", "create",
            "-method", method,
            "-bind-type", bind_type,
            "-bind-name", bind_name,
            "-selector", selector,
        ]
        if description:
            args += ["-description", description]
        self.runner.run(args)

    def policy_create(self, name: str, rules: str, description: str = "") -> None:
        with tempfile.TemporaryDirectory(prefix="nomadboot-consul-") as tmp:
            path = Path(tmp) / f"{name}.hcl"
            path.write_text(rules)
            args = ["acl", "policy", "create", "-name", name, "-rules", f"@{path}"]
            if description:
                args += ["-description", description]
            self.runner.run(args)

    def role_create(self, name: str, policies: List[str], description: str = "") -> None:
        args = ["acl", "role", "create", "-name", name]
        for p in policies:
            args += ["-policy-name", p]
        if description:
            args += ["-description", description]
        self.runner.run(args)
