# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/execution/runner.py

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from nomadboot.errors import CommandError

log = logging.getLogger("nomadboot")

# Values of these env keys never reach the log.
_SECRET_ENV_KEYS = {"NOMAD_TOKEN", "CONSUL_HTTP_TOKEN", "VAULT_TOKEN"}


@dataclass
class CommandRunner:
    """
    Runs one vendor CLI (aws, nomad, consul, vault) with an explicit
    environment overlay instead of exported process globals.

    Testable by mocking subprocess.run.
    """

    binary: str
    env: Mapping[str, str] = field(default_factory=dict)
    label: Optional[str] = None

    def _child_env(self) -> dict[str, str]:
        return {**os.environ, **{k: v for k, v in self.env.items() if v is not None}}

    def run(
        self,
        args: Sequence[str],
        *,
        allow_rc: set[int] | None = None,
        input: str | bytes | None = None,
        text: bool = True,
    ) -> subprocess.CompletedProcess:
        """
        Run `<binary> <args...>` and capture output.

        Raises CommandError when the binary is missing or the exit code is
        not in allow_rc (defaults to {0}). Callers that inspect a non-zero
        result themselves pass e.g. allow_rc={0, 1}.
        """
        allow_rc = allow_rc or {0}
        label = self.label or self.binary
        argv = [self.binary, *args]
        cmd_str = " ".join(argv)

        log.debug(f"[{label}] $ {cmd_str}")
        redacted = sorted(k for k in self.env if k in _SECRET_ENV_KEYS)
        if redacted:
            log.debug(f"[{label}] env: {', '.join(f'{k}=<redacted>' for k in redacted)}")

        start = time.time()
        try:
            cp = subprocess.run(
                argv,
                check=False,
                capture_output=True,
                text=text,
                input=input,
                env=self._child_env(),
            )
        except FileNotFoundError as e:
            raise CommandError(f"[{label}] executable not found: {self.binary}") from e

        elapsed = round(time.time() - start, 2)

        if cp.returncode not in allow_rc:
            stderr = _as_text(cp.stderr)
            log.debug(f"[{label}][exit {cp.returncode}] ({elapsed}s)\n{stderr.rstrip()}")
            raise CommandError(
                f"[{label}] failed (rc={cp.returncode}): {cmd_str}\n{stderr.strip()}",
                returncode=cp.returncode,
                stderr=stderr,
            )

        log.debug(f"[{label}][exit {cp.returncode}] ({elapsed}s)")
        return cp


def _as_text(v) -> str:
    if v is None:
        return ""
    if isinstance(v, (bytes, bytearray)):
        return v.decode("utf-8", errors="replace")
    return str(v)


def output_text(cp: subprocess.CompletedProcess) -> str:
    """stdout + stderr of a completed process as one string."""
    return _as_text(cp.stdout) + _as_text(cp.stderr)
