# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/config/loader.py

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from nomadboot.errors import ConfigError
from .models import BootstrapConfig

# env var -> dotted path in BootstrapConfig
ENV_OVERRIDES: dict[str, str] = {
    "NOMAD_SECRETS_BUCKET": "secrets_bucket",
    "NOMAD_SELF_ADDRESS": "self_address",
    "AWS_REGION": "region",
    "NOMAD_ROLE": "role",
    "NOMAD_ADDR": "nomad.addr",
    "NOMAD_CACERT": "nomad.tls.ca_file",
    "NOMAD_CLIENT_CERT": "nomad.tls.cert_file",
    "NOMAD_CLIENT_KEY": "nomad.tls.key_file",
    "NOMAD_POLICIES": "policies",
}


def _set_dotted(data: dict[str, Any], dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split(".")
    node = data
    for p in parents:
        child = node.get(p)
        if not isinstance(child, dict):
            child = {}
            node[p] = child
        node = child
    node[leaf] = value


def load_config(
    path: str | Path | None = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> BootstrapConfig:
    """
    Build the run configuration from an optional YAML file overlaid by
    environment variables. A variable that is set always wins, even when
    empty, so an empty NOMAD_SECRETS_BUCKET is reported instead of silently
    falling back to the file.
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    if path:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"config file not found: {p}")
        # expand environment variables like ${AWS_REGION}
        expanded = os.path.expandvars(p.read_text())
        loaded = yaml.safe_load(expanded) or {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Expected mapping in {p}, got {type(loaded).__name__}")
        data = loaded

    for var, dotted in ENV_OVERRIDES.items():
        if var not in env:
            continue
        value: Any = env[var]
        if dotted == "policies":
            value = [x.strip() for x in value.split(",") if x.strip()]
        _set_dotted(data, dotted, value)

    try:
        return BootstrapConfig.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(x) for x in err["loc"]) for err in e.errors())
        raise ConfigError(f"invalid configuration ({fields}): {e}") from e
