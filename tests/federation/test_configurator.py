import json
from pathlib import Path

import pytest

from nomadboot.config.models import BootstrapConfig
from nomadboot.errors import FederationError
from nomadboot.federation.configurator import FederationConfigurator

CA_PEM = "-----BEGIN CERTIFICATE-----\nMIIBfake\n-----END CERTIFICATE-----\n"

# --------- Test doubles ----------


class FakeConsul:
    def __init__(self):
        self.auth_methods = {}
        self.policies = {}
        self.roles = {}
        self.rules = []
        self.creates = []

    def auth_method_exists(self, name):
        return name in self.auth_methods

    def auth_method_create(self, *, name, method_type, config, description="", max_token_ttl=""):
        self.creates.append(("auth-method", name))
        self.auth_methods[name] = {"type": method_type, "config": config, "ttl": max_token_ttl}

    def policy_exists(self, name):
        return name in self.policies

    def policy_create(self, name, rules, description=""):
        self.creates.append(("policy", name))
        self.policies[name] = rules

    def role_exists(self, name):
        return name in self.roles

    def role_create(self, name, policies, description=""):
        self.creates.append(("role", name))
        self.roles[name] = list(policies)

    def binding_rules(self, method):
        return [r for r in self.rules if r["AuthMethod"] == method]

    def binding_rule_create(self, *, method, bind_type, bind_name, selector, description=""):
        self.creates.append(("binding-rule", bind_type))
        self.rules.append({"AuthMethod": method, "BindType": bind_type, "BindName": bind_name, "Selector": selector})


class FakeVault:
    def __init__(self):
        self.mounts = {"token/": {"accessor": "auth_token_0"}}
        self.data = {}
        self.policies = {}
        self.creates = []

    def auth_mounts(self):
        return dict(self.mounts)

    def auth_enable(self, path, method_type, description=""):
        self.creates.append(("auth", path))
        self.mounts[f"{path}/"] = {"type": method_type, "accessor": "auth_jwt_1234"}

    def read(self, path):
        return self.data.get(path)

    def write(self, path, data):
        self.creates.append(("write", path))
        self.data[path] = data

    def policy_exists(self, name):
        return name in self.policies

    def policy_write(self, name, text):
        self.creates.append(("policy", name))
        self.policies[name] = text


def _cfg(tmp_path: Path) -> BootstrapConfig:
    ca = tmp_path / "ca.pem"
    ca.write_text(CA_PEM)
    return BootstrapConfig(
        secrets_bucket="acme-secrets",
        self_address="10.0.1.12:4647",
        nomad={"tls": {"ca_file": ca}},
        consul={"enabled": True},
        vault={"enabled": True},
    )


# --------- Tests ----------


def test_first_run_registers_everything(tmp_path: Path):
    consul, vault = FakeConsul(), FakeVault()
    created = FederationConfigurator(_cfg(tmp_path), consul=consul, vault=vault).configure()

    assert created == [
        "consul:auth-method/nomad-workloads",
        "consul:policy/nomad-tasks",
        "consul:role/nomad-default-tasks",
        "consul:binding-rule/service:${value.nomad_service}",
        "consul:binding-rule/role:nomad-${value.nomad_namespace}-tasks",
        "vault:auth/jwt-nomad",
        "vault:auth/jwt-nomad/config",
        "vault:auth/jwt-nomad/role/nomad-workloads",
        "vault:policy/nomad-workloads",
    ]

    method = consul.auth_methods["nomad-workloads"]
    assert method["type"] == "jwt"
    assert method["config"]["JWKSURL"] == "https://10.0.1.12:4646/.well-known/jwks.json"
    assert method["config"]["JWKSCACert"] == CA_PEM
    assert "\\n" in json.dumps(method["config"])
    assert set(method["config"]["ClaimMappings"]) == {
        "nomad_namespace", "nomad_job_id", "nomad_task", "nomad_service",
    }

    assert consul.roles["nomad-default-tasks"] == ["nomad-tasks"]
    assert 'key_prefix "nomad/"' in consul.policies["nomad-tasks"]
    assert "nomad-workloads" in consul.policies["nomad-tasks"]

    assert vault.data["auth/jwt-nomad/config"]["jwks_ca_pem"] == CA_PEM
    assert vault.data["auth/jwt-nomad/role/nomad-workloads"]["token_policies"] == ["nomad-workloads"]

    policy = vault.policies["nomad-workloads"]
    assert "{{identity.entity.aliases.auth_jwt_1234.metadata.nomad_namespace}}" in policy
    assert 'path "kv/data/' in policy


def test_second_run_creates_nothing(tmp_path: Path):
    cfg = _cfg(tmp_path)
    consul, vault = FakeConsul(), FakeVault()
    FederationConfigurator(cfg, consul=consul, vault=vault).configure()
    assert ("role", "nomad-default-tasks") in consul.creates
    n_consul, n_vault = len(consul.creates), len(vault.creates)

    assert FederationConfigurator(cfg, consul=consul, vault=vault).configure() == []
    assert len(consul.creates) == n_consul
    assert len(vault.creates) == n_vault


def test_partial_previous_run_is_resumed(tmp_path: Path):
    cfg = _cfg(tmp_path)
    consul, vault = FakeConsul(), FakeVault()
    consul.auth_methods["nomad-workloads"] = {}
    consul.policies["nomad-tasks"] = "service_prefix \"\" {}"
    vault.mounts["jwt-nomad/"] = {"accessor": "auth_jwt_9"}
    vault.data["auth/jwt-nomad/config"] = {"jwks_url": "https://10.0.1.12:4646/.well-known/jwks.json"}

    created = FederationConfigurator(cfg, consul=consul, vault=vault).configure()

    assert consul.creates == [
        ("role", "nomad-default-tasks"),
        ("binding-rule", "service"),
        ("binding-rule", "role"),
    ]
    assert vault.creates == [
        ("write", "auth/jwt-nomad/role/nomad-workloads"),
        ("policy", "nomad-workloads"),
    ]
    assert "auth_jwt_9" in vault.policies["nomad-workloads"]
    assert len(created) == 5


def test_disabled_systems_are_not_touched(tmp_path: Path):
    assert FederationConfigurator(_cfg(tmp_path)).configure() == []


def test_unreadable_ca_is_a_federation_error(tmp_path: Path):
    cfg = _cfg(tmp_path)
    (tmp_path / "ca.pem").unlink()
    with pytest.raises(FederationError):
        FederationConfigurator(cfg, consul=FakeConsul()).configure()
