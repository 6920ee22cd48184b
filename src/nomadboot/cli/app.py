# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/nomadboot/cli/app.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import typer

from nomadboot.bootstrap.gate import BootstrapGate
from nomadboot.bootstrap.snapshot import SnapshotJob
from nomadboot.config.loader import load_config
from nomadboot.config.models import BootstrapConfig
from nomadboot.errors import NomadBootError
from nomadboot.logging.log import init_logging
from nomadboot.nomad.online import wait_online
from nomadboot.nomad.status import LeaderOracle
from nomadboot.observers.dispatcher import EventBus
from nomadboot.observers.jsonfile import JsonFileObserver
from nomadboot.observers.logger import LoggerObserver
from nomadboot.storage.s3 import S3SecretStore


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Nomad server bootstrap CLI", no_args_is_help=True)


@dataclass
class CliState:
    config_path: Optional[Path]
    events_file: Optional[Path]
    logger: logging.Logger
    run_id: str


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML config file; environment variables override it"
    ),
    debug: bool = typer.Option(False, "--debug", help="Log commands and events to the console"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Write a full DEBUG run log here"),
    events_file: Optional[Path] = typer.Option(
        None, "--events-file", help="Append lifecycle events as JSON lines"
    ),
):
    logger, run_id, _ = init_logging(log_dir=log_dir, verbose=debug)
    ctx.obj = CliState(config_path=config, events_file=events_file, logger=logger, run_id=run_id)


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

@contextmanager
def fatal_errors(state: CliState) -> Iterator[None]:
    """The only place where failures become exit codes."""
    try:
        yield
    except NomadBootError as e:
        state.logger.error(str(e))
        raise typer.Exit(code=1)


def _load(state: CliState) -> BootstrapConfig:
    with fatal_errors(state):
        return load_config(state.config_path)


def _bus(state: CliState) -> EventBus:
    observers = [LoggerObserver(state.logger)]
    if state.events_file is not None:
        observers.append(JsonFileObserver(state.events_file))
    return EventBus(observers=observers)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def bootstrap(ctx: typer.Context):
    """
    Bootstrap ACLs on the leader (once per cluster) and apply keystore,
    policies and Consul/Vault federation. A no-op on non-leaders.
    """
    state: CliState = ctx.obj
    cfg = _load(state)

    with fatal_errors(state):
        gate = BootstrapGate(
            cfg,
            store=S3SecretStore(cfg),
            oracle=LeaderOracle(cfg.nomad),
            bus=_bus(state),
            run_id=state.run_id,
        )
        result = gate.run()

    if not result.ok:
        raise typer.Exit(code=1)


@app.command()
def online(
    ctx: typer.Context,
    retries: Optional[int] = typer.Option(None, "--retries", help="Override online.retries"),
    delay: Optional[float] = typer.Option(None, "--delay", help="Override online.delay_seconds"),
):
    """Wait until the local agent sees enough peers and an elected leader."""
    state: CliState = ctx.obj
    cfg = _load(state)

    online_cfg = cfg.online
    if retries is not None:
        online_cfg = online_cfg.model_copy(update={"retries": retries})
    if delay is not None:
        online_cfg = online_cfg.model_copy(update={"delay_seconds": delay})

    with fatal_errors(state):
        leader, peers = wait_online(LeaderOracle(cfg.nomad), online_cfg)

    typer.echo(f"online: leader={leader} peers={len(peers)}")


@app.command()
def snapshot(ctx: typer.Context):
    """Save a raft snapshot and the keystore archive to the secrets bucket (leader only)."""
    state: CliState = ctx.obj
    cfg = _load(state)

    with fatal_errors(state):
        job = SnapshotJob(cfg, store=S3SecretStore(cfg), oracle=LeaderOracle(cfg.nomad))
        result = job.run()

    for name in result.uploaded:
        typer.echo(name)


@app.command()
def leader(ctx: typer.Context):
    """Print whether this server is the current leader."""
    state: CliState = ctx.obj
    cfg = _load(state)

    leading = LeaderOracle(cfg.nomad).is_leader(cfg.self_address)
    typer.echo("leader" if leading else "follower")


if __name__ == "__main__":
    app()
