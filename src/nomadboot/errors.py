# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/errors.py

from __future__ import annotations


class NomadBootError(RuntimeError):
    """Base class for failures that end a run with exit code 1."""


class ConfigError(NomadBootError):
    """Raised when required configuration is missing or invalid."""


class SecretFetchError(NomadBootError):
    """Raised when an object cannot be read from the secrets bucket."""


class ObjectNotFound(SecretFetchError):
    """Raised when the requested object does not exist in the bucket."""


class CommandError(NomadBootError):
    """Raised when a vendor CLI is missing or exits with an unexpected code."""

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class NomadStatusError(NomadBootError):
    """Raised when the Nomad status API cannot be queried."""


class BootstrapError(NomadBootError):
    """Raised when the ACL bootstrap call fails for reasons other than 'already done'."""


class FederationError(NomadBootError):
    """Raised when Consul or Vault integration cannot be configured."""


class ArchiveError(NomadBootError):
    """Raised when the keystore archive cannot be decoded or built."""
