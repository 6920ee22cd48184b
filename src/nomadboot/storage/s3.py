# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/storage/s3.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from nomadboot.config.models import BootstrapConfig
from nomadboot.errors import CommandError, ObjectNotFound, SecretFetchError
from nomadboot.execution.runner import CommandRunner

log = logging.getLogger("nomadboot")

_NOT_FOUND_MARKERS = ("(404)", "NoSuchKey", "Not Found", "does not exist")


def _is_not_found(stderr: str) -> bool:
    return any(m in stderr for m in _NOT_FOUND_MARKERS)


class S3SecretStore:
    """
    Secrets bucket accessed through the `aws s3` CLI.

    Keys follow `<region>/<role>/nomad/<logical-name>` inside
    `s3://<secrets_bucket>/`. Every read goes to the bucket; nothing is cached.
    """

    def __init__(self, cfg: BootstrapConfig, runner: Optional[CommandRunner] = None):
        self.bucket = cfg.secrets_bucket
        self.region = cfg.region
        self.role = cfg.role
        self.runner = runner or CommandRunner(
            binary=cfg.aws_binary,
            env={"AWS_REGION": cfg.region, "AWS_DEFAULT_REGION": cfg.region},
            label="s3",
        )

    # ------------------------- key scheme -------------------------

    def key(self, path: str) -> str:
        return f"{self.region}/{self.role}/nomad/{path.lstrip('/')}"

    def uri(self, path: str) -> str:
        return f"s3://{self.bucket}/{self.key(path)}"

    # ------------------------- operations -------------------------

    def fetch(self, path: str) -> bytes:
        """Stream one object to stdout and return its raw bytes (`get-value`)."""
        uri = self.uri(path)
        cp = self._cp([uri, "-"], path=path, text=False)
        log.debug(f"[s3] fetched {uri} ({len(cp.stdout or b'')} bytes)")
        return cp.stdout or b""

    def get(self, path: str, dest: Path) -> Path:
        """Copy one object to a local file (`get`)."""
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        self._cp([self.uri(path), str(dest)], path=path)
        return dest

    def put(self, path: str, data: bytes) -> None:
        uri = self.uri(path)
        try:
            self.runner.run(["s3", "cp", "-", uri, "--only-show-errors"], input=data, text=False)
        except CommandError as e:
            raise SecretFetchError(f"upload to {uri} failed: {e}") from e
        log.info(f"[s3] uploaded {uri} ({len(data)} bytes)")

    def _cp(self, args: list[str], *, path: str, text: bool = True):
        try:
            return self.runner.run(["s3", "cp", *args, "--only-show-errors"], text=text)
        except CommandError as e:
            if e.returncode is not None and _is_not_found(e.stderr):
                raise ObjectNotFound(f"{self.uri(path)} not found") from e
            raise SecretFetchError(f"cannot read {self.uri(path)}: {e}") from e
