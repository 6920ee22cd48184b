# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/federation/configurator.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from nomadboot.config.models import BootstrapConfig
from nomadboot.errors import FederationError
from nomadboot.storage.interface import SecretStore
from nomadboot.storage.secrets import fetch_token
from .consul import ConsulCli
from .templates import TemplateRenderer
from .vault import VaultCli

log = logging.getLogger("nomadboot")


@dataclass(frozen=True)
class BindingRuleSpec:
    bind_type: str
    bind_name: str
    selector: str
    description: str


# Services get a service identity; everything else gets the per-namespace tasks role.
CONSUL_BINDING_RULES: List[BindingRuleSpec] = [
    BindingRuleSpec(
        bind_type="service",
        bind_name="${value.nomad_service}",
        selector='"nomad_service" in value',
        description="Nomad workload identity for services",
    ),
    BindingRuleSpec(
        bind_type="role",
        bind_name="nomad-${value.nomad_namespace}-tasks",
        selector='"nomad_service" not in value',
        description="Nomad workload identity for tasks",
    ),
]


class FederationConfigurator:
    """
    Registers Nomad as a JWT issuer with Consul and Vault.

    Every object is checked before it is created, so a run that failed
    half-way is finished by simply running again. Nothing is ever updated.
    """

    def __init__(
        self,
        cfg: BootstrapConfig,
        *,
        consul: Optional[ConsulCli] = None,
        vault: Optional[VaultCli] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.cfg = cfg
        self.consul = consul
        self.vault = vault
        self.renderer = renderer or TemplateRenderer()

    def configure(self) -> List[str]:
        """Returns identifiers of the objects created by this call."""
        created: List[str] = []
        if self.consul is not None:
            created += self.configure_consul()
        if self.vault is not None:
            created += self.configure_vault()
        return created

    def _ca_pem(self) -> str:
        ca = self.cfg.nomad.tls.ca_file
        try:
            return ca.read_text()
        except OSError as e:
            raise FederationError(f"cannot read Nomad CA certificate {ca}: {e}") from e

    # ----------------------------
    # Consul
    # ----------------------------
    def consul_auth_method_config(self) -> Dict[str, Any]:
        c = self.cfg.consul
        return {
            "JWKSURL": self.cfg.resolved_jwks_url(),
            "JWKSCACert": self._ca_pem(),
            "JWTSupportedAlgs": ["RS256"],
            "BoundAudiences": [c.audience],
            "ClaimMappings": dict(c.claim_mappings),
        }

    def configure_consul(self) -> List[str]:
        assert self.consul is not None
        c = self.cfg.consul
        created: List[str] = []

        if self.consul.auth_method_exists(c.auth_method):
            log.info(f"[consul] auth method {c.auth_method} already present")
        else:
            self.consul.auth_method_create(
                name=c.auth_method,
                method_type="jwt",
                config=self.consul_auth_method_config(),
                description="Nomad workload identity",
                max_token_ttl=c.token_ttl,
            )
            created.append(f"consul:auth-method/{c.auth_method}")
            log.info(f"[consul] auth method {c.auth_method} created")

        # the role binding rule resolves to these roles; they must exist for task logins
        if self.consul.policy_exists(c.tasks_policy):
            log.info(f"[consul] policy {c.tasks_policy} already present")
        else:
            rules = self.renderer.render(
                "consul-tasks-policy.hcl.j2",
                {"auth_method": c.auth_method, "kv_prefix": c.kv_prefix},
            )
            self.consul.policy_create(c.tasks_policy, rules, description="Nomad workload identity for tasks")
            created.append(f"consul:policy/{c.tasks_policy}")
            log.info(f"[consul] policy {c.tasks_policy} created")

        for ns in c.task_namespaces:
            role = f"nomad-{ns}-tasks"
            if self.consul.role_exists(role):
                continue
            self.consul.role_create(role, [c.tasks_policy], description=f"Nomad tasks in namespace {ns}")
            created.append(f"consul:role/{role}")
            log.info(f"[consul] role {role} created")

        existing = {
            (r.get("BindType"), r.get("BindName"))
            for r in self.consul.binding_rules(c.auth_method)
        }
        for rule in CONSUL_BINDING_RULES:
            if (rule.bind_type, rule.bind_name) in existing:
                continue
            self.consul.binding_rule_create(
                method=c.auth_method,
                bind_type=rule.bind_type,
                bind_name=rule.bind_name,
                selector=rule.selector,
                description=rule.description,
            )
            created.append(f"consul:binding-rule/{rule.bind_type}:{rule.bind_name}")
            log.info(f"[consul] binding rule {rule.bind_type}={rule.bind_name} created")

        return created

    # ----------------------------
    # Vault
    # ----------------------------
    def vault_role_payload(self) -> Dict[str, Any]:
        v = self.cfg.vault
        return {
            "role_type": "jwt",
            "bound_audiences": [v.audience],
            "user_claim": "/nomad_job_id",
            "user_claim_json_pointer": True,
            "claim_mappings": dict(v.claim_mappings),
            "token_type": "service",
            "token_policies": [v.policy],
            "token_period": v.token_ttl,
            "token_explicit_max_ttl": 0,
        }

    def configure_vault(self) -> List[str]:
        assert self.vault is not None
        v = self.cfg.vault
        created: List[str] = []

        key = f"{v.mount}/"
        mounts = self.vault.auth_mounts()
        if key not in mounts:
            self.vault.auth_enable(v.mount, "jwt", description="Nomad workload identity")
            created.append(f"vault:auth/{v.mount}")
            log.info(f"[vault] auth mount {v.mount} enabled")
            mounts = self.vault.auth_mounts()

        accessor = (mounts.get(key) or {}).get("accessor")
        if not accessor:
            raise FederationError(f"[vault] auth mount {v.mount} has no accessor")

        config_path = f"auth/{v.mount}/config"
        current = self.vault.read(config_path)
        if current and current.get("jwks_url"):
            log.info(f"[vault] {config_path} already configured")
        else:
            self.vault.write(config_path, {
                "jwks_url": self.cfg.resolved_jwks_url(),
                "jwks_ca_pem": self._ca_pem(),
                "jwt_supported_algs": ["RS256"],
                "default_role": v.role,
            })
            created.append(f"vault:{config_path}")
            log.info(f"[vault] {config_path} written")

        role_path = f"auth/{v.mount}/role/{v.role}"
        if self.vault.read(role_path) is not None:
            log.info(f"[vault] role {v.role} already present")
        else:
            self.vault.write(role_path, self.vault_role_payload())
            created.append(f"vault:{role_path}")
            log.info(f"[vault] role {v.role} created")

        if self.vault.policy_exists(v.policy):
            log.info(f"[vault] policy {v.policy} already present")
        else:
            text = self.renderer.render(
                "vault-policy.hcl.j2",
                {"accessor": accessor, "kv_mount": v.kv_mount, "mount": v.mount},
            )
            self.vault.policy_write(v.policy, text)
            created.append(f"vault:policy/{v.policy}")
            log.info(f"[vault] policy {v.policy} created")

        return created


def build_federation(cfg: BootstrapConfig, store: SecretStore) -> FederationConfigurator:
    """Fetch the Consul/Vault tokens of the enabled integrations and wire the CLIs."""
    consul = ConsulCli(cfg.consul, fetch_token(store, cfg.consul.token_name)) if cfg.consul.enabled else None
    vault = VaultCli(cfg.vault, fetch_token(store, cfg.vault.token_name)) if cfg.vault.enabled else None
    return FederationConfigurator(cfg, consul=consul, vault=vault)
