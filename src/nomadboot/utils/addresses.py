# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/utils/addresses.py

from __future__ import annotations

import ipaddress
from typing import NamedTuple, Optional


class HostPort(NamedTuple):
    host: str
    port: Optional[int]


def parse_address(value: str) -> HostPort:
    """
    Parse "host", "host:port", "[v6]:port", "v6" or "https://host:port/path"
    into a normalized (host, port). Hosts are lower-cased and IP literals
    are canonicalized so "10.0.0.01"-style spellings do not slip through.
    """
    v = (value or "").strip().strip('"')
    if "://" in v:
        v = v.split("://", 1)[1]
    v = v.split("/", 1)[0]
    if not v:
        raise ValueError(f"empty address: {value!r}")

    port: Optional[int] = None
    if v.startswith("["):
        host, _, rest = v[1:].partition("]")
        if rest.startswith(":") and rest[1:]:
            port = int(rest[1:])
    elif v.count(":") == 1:
        host, _, p = v.partition(":")
        port = int(p) if p else None
    else:
        # bare hostname, IPv4 or unbracketed IPv6
        host = v

    return HostPort(_canonical_host(host), port)


def _canonical_host(host: str) -> str:
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return host.lower().rstrip(".")


def same_endpoint(reported: str, own: str) -> bool:
    """
    Exact comparison of a reported address against our own identity.

    The port only participates when our own identity carries one, so a
    self address of "10.0.0.1" matches a leader of "10.0.0.1:4647".
    """
    try:
        r = parse_address(reported)
        o = parse_address(own)
    except ValueError:
        return False
    if r.host != o.host:
        return False
    return o.port is None or r.port == o.port
