# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/config/models.py

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from nomadboot.utils.addresses import parse_address

# Claim mappings shared by the Consul auth method and the Vault role.
DEFAULT_CLAIM_MAPPINGS: Dict[str, str] = {
    "nomad_namespace": "nomad_namespace",
    "nomad_job_id": "nomad_job_id",
    "nomad_task": "nomad_task",
    "nomad_service": "nomad_service",
}


class TLSConfig(BaseModel):
    """Client certificate triple used for mutual TLS against the local agent."""

    ca_file: Path = Path("/opt/nomad/tls/ca/ca.pem")
    cert_file: Path = Path("/opt/nomad/tls/client.pem")
    key_file: Path = Path("/opt/nomad/tls/client-key.pem")


class NomadConfig(BaseModel):
    addr: str = "https://127.0.0.1:4646"
    binary: str = "nomad"
    tls: TLSConfig = TLSConfig()
    # None keeps the transport default (no timeout)
    timeout_seconds: Optional[float] = None


class ConsulFederationConfig(BaseModel):
    enabled: bool = False
    binary: str = "consul"
    addr: str = "https://127.0.0.1:8501"
    ca_file: Optional[Path] = None
    token_name: str = "consul-token"          # logical name in the secrets bucket
    auth_method: str = "nomad-workloads"
    tasks_policy: str = "nomad-tasks"
    kv_prefix: str = "nomad"
    # one "nomad-<namespace>-tasks" role per namespace, matching the role binding rule
    task_namespaces: List[str] = Field(default_factory=lambda: ["default"])
    token_ttl: str = "30m"
    audience: str = "consul.io"
    claim_mappings: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_CLAIM_MAPPINGS))


class VaultFederationConfig(BaseModel):
    enabled: bool = False
    binary: str = "vault"
    addr: str = "https://vault.service.consul:8200"
    ca_file: Optional[Path] = None
    token_name: str = "vault-token"           # logical name in the secrets bucket
    mount: str = "jwt-nomad"
    role: str = "nomad-workloads"
    policy: str = "nomad-workloads"
    kv_mount: str = "kv"
    token_ttl: str = "1h"
    audience: str = "vault.io"
    claim_mappings: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_CLAIM_MAPPINGS))


class OnlineConfig(BaseModel):
    min_peers: int = 2
    retries: int = 60
    delay_seconds: float = 5.0


class BootstrapConfig(BaseModel):
    """Everything a bootstrap/online/snapshot run needs, passed explicitly to every component."""

    secrets_bucket: str
    self_address: str
    region: str = "us-east-1"
    role: str = "nomad-server"
    aws_binary: str = "aws"

    nomad: NomadConfig = NomadConfig()

    token_name: str = "bootstrap-token"
    policies: List[str] = Field(default_factory=lambda: ["operator"])
    policy_description: str = "managed by nomadboot"

    keystore_dir: Path = Path("/opt/nomad/data/server/keystore")
    keystore_object: str = "keystore.tar.gz.b64"
    snapshot_prefix: str = "snapshots"

    consul: ConsulFederationConfig = ConsulFederationConfig()
    vault: VaultFederationConfig = VaultFederationConfig()
    online: OnlineConfig = OnlineConfig()

    # JWKS endpoint of this server; defaults to the self address on the Nomad HTTP port
    jwks_url: Optional[str] = None

    @field_validator("secrets_bucket", "self_address")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("self_address")
    @classmethod
    def _parseable(cls, v: str) -> str:
        port = parse_address(v).port
        if port is not None and not 0 < port < 65536:
            raise ValueError(f"port out of range: {port}")
        return v

    @field_validator("policies")
    @classmethod
    def _no_blank_policies(cls, v: List[str]) -> List[str]:
        return [p.strip() for p in v if p and p.strip()]

    def resolved_jwks_url(self) -> str:
        if self.jwks_url:
            return self.jwks_url
        host = parse_address(self.self_address).host
        if ":" in host:
            host = f"[{host}]"
        return f"https://{host}:4646/.well-known/jwks.json"
