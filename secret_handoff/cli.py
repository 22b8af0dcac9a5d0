"""`secret-handoff` command line.

Usage:
    secret-handoff run --simulate --rounds 2
    secret-handoff run --substrate mypkg.iexec:build_substrate
    secret-handoff status
    secret-handoff generate password
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Optional

import click
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import FlowConfig
from .demo.substrate import build_simulation
from .enclave.consumer import consumer_environment, run_consumer
from .enclave.producer import producer_environment, run_producer
from .errors import SecretHandoffError
from .fingerprint.storage import FingerprintRepository, InMemoryFingerprintRepository, create_repository_from_env
from .flow import FlowReport, build_flow
from .generation.generator import generate_secret
from .generation.types import SecretType
from .plugins import load_object
from .provisioning import ProvisioningState

console = Console()

EXIT_ERROR = 1
EXIT_MISMATCH = 2


def _random_address() -> str:
    return "0x" + secrets.token_hex(20)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )


def _simulation_config(config: FlowConfig) -> FlowConfig:
    """Fill identities and timing so the simulation runs without any environment."""
    return replace(
        config,
        producer_app=config.producer_app or _random_address(),
        consumer_app=config.consumer_app or _random_address(),
        private_key=config.private_key or "0x" + secrets.token_hex(32),
        poll=replace(config.poll, settle_delay=0.0, poll_interval=0.01, max_poll_interval=0.05),
    )


def _render_report(report: FlowReport, round_no: Optional[int] = None) -> None:
    v = report.verification
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("Consumer", report.provisioning.consumer_identity)
    state = report.provisioning.state
    if state is ProvisioningState.REUSE:
        table.add_row("Provisioning", f"reused (run #{report.provisioning.record.reuse_count + 1})")
    else:
        table.add_row("Provisioning", "new secret provisioned")
    table.add_row("Expected digest", v.expected_digest or "unknown")
    table.add_row("Observed digest", v.observed_digest or "n/a")
    if report.consumer.preview:
        table.add_row("Consumer preview", report.consumer.preview)

    if v.matched:
        title, style = "[bold green]DIGESTS MATCH[/bold green]", "green"
    else:
        title, style = f"[bold red]DIGEST MISMATCH ({v.reason.value})[/bold red]", "red"
    if round_no is not None:
        title = f"Round {round_no}: {title}"
    console.print(Panel(table, title=title, border_style=style))


def _validate_label(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[str]:
    if value is not None and "," in value:
        raise click.BadParameter("must not contain commas")
    return value


def _fail(exc: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {exc}")
    sys.exit(EXIT_ERROR)


@click.group()
@click.option("--env-file", type=click.Path(dir_okay=False), default=None, help="Load variables from a .env file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def main(ctx: click.Context, env_file: Optional[str], verbose: bool) -> None:
    """Provision a secret inside a trusted task and verify a consumer received it."""
    ctx.ensure_object(dict)
    load_dotenv(env_file or find_dotenv(usecwd=True), override=False)
    _configure_logging(verbose)


@main.command("run")
@click.option("--simulate", is_flag=True, help="Run against the in-process substrate and store")
@click.option("--rounds", default=1, show_default=True, type=click.IntRange(min=1), help="Simulated runs in a row")
@click.option("--substrate", "substrate_path", envvar="SECRET_HANDOFF_SUBSTRATE", default=None,
              help="Substrate factory 'package.module:callable' taking the FlowConfig")
@click.option("--store-backend", "store_path", envvar="SECRET_HANDOFF_STORE", default=None,
              help="Store factory 'package.module:callable' taking ProducerCredentials")
@click.option("--label", default=None, callback=_validate_label, help="Secret label passed to the producer")
@click.option("--no-grant", is_flag=True, help="Skip pushing producer credentials")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
def run_command(
    simulate: bool,
    rounds: int,
    substrate_path: Optional[str],
    store_path: Optional[str],
    label: Optional[str],
    no_grant: bool,
    as_json: bool,
) -> None:
    """Provision (or reuse) the consumer's secret, run the consumer, compare digests."""
    try:
        config = FlowConfig.from_env()
        if simulate:
            reports = asyncio.run(_run_simulated(_simulation_config(config), rounds, label, not no_grant))
        else:
            config.validate()
            substrate = load_object(substrate_path, setting="SECRET_HANDOFF_SUBSTRATE")(config)
            store_backend = None
            if store_path:
                store_backend = load_object(store_path, setting="SECRET_HANDOFF_STORE")(config.producer_credentials())
            flow = build_flow(config, substrate=substrate, store_backend=store_backend)
            reports = [asyncio.run(_run_once(flow, label, not no_grant))]
    except SecretHandoffError as exc:
        _fail(exc)
        return

    for i, report in enumerate(reports, start=1):
        if as_json:
            click.echo(json.dumps(report.to_dict(), indent=2))
        else:
            _render_report(report, i if len(reports) > 1 else None)
    if not all(r.matched for r in reports):
        sys.exit(EXIT_MISMATCH)


async def _run_once(flow: Any, label: Optional[str], grant: bool) -> FlowReport:
    try:
        return await flow.run(secret_label=label, grant_access=grant)
    finally:
        await flow.close()


async def _run_simulated(config: FlowConfig, rounds: int, label: Optional[str], grant: bool) -> list[FlowReport]:
    config.validate()
    sim = build_simulation(config)
    repository = InMemoryFingerprintRepository()
    flow = build_flow(
        config,
        substrate=sim.substrate,
        store_backend=sim.store,
        transport=sim.transport,
        repository=repository,
    )
    reports = []
    for _ in range(rounds):
        reports.append(await flow.run(secret_label=label, grant_access=grant))
    await flow.close()
    return reports


def _repository(config: FlowConfig, lock_file: Optional[str]) -> FingerprintRepository:
    return create_repository_from_env(lock_file or config.lock_file, config.pg_dsn)


@main.command("status")
@click.option("--consumer", default=None, help="Consumer identity (default CONSUME_APP_ADDRESS)")
@click.option("--lock-file", default=None, help="Fingerprint file (default SECRET_LOCK_FILE)")
def status_command(consumer: Optional[str], lock_file: Optional[str]) -> None:
    """Show the recorded fingerprint and whether the next run would provision."""
    config = FlowConfig.from_env()
    target = consumer or config.consumer_app
    if not target:
        _fail(SecretHandoffError("No consumer identity (pass --consumer or set CONSUME_APP_ADDRESS)"))
        return

    async def load() -> Any:
        repository = _repository(config, lock_file)
        try:
            return await repository.load(target)
        finally:
            await repository.close()

    record = asyncio.run(load())
    if record is None:
        console.print(f"[yellow]{ProvisioningState.NEEDS_PROVISION.value}[/yellow]: no fingerprint recorded for {target}")
        return
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Consumer", record.consumer_identity)
    table.add_row("Digest", record.digest)
    table.add_row("Recorded at", record.recorded_at.isoformat())
    table.add_row("Reuse count", str(record.reuse_count))
    console.print(Panel(table, title=f"[cyan]{ProvisioningState.REUSE.value}[/cyan]", border_style="cyan"))


@main.command("forget")
@click.option("--consumer", default=None, help="Consumer identity (default CONSUME_APP_ADDRESS)")
@click.option("--lock-file", default=None, help="Fingerprint file (default SECRET_LOCK_FILE)")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
def forget_command(consumer: Optional[str], lock_file: Optional[str], yes: bool) -> None:
    """Delete the recorded fingerprint so the next run provisions a new secret."""
    config = FlowConfig.from_env()
    target = consumer or config.consumer_app
    if not target:
        _fail(SecretHandoffError("No consumer identity (pass --consumer or set CONSUME_APP_ADDRESS)"))
        return
    if not yes:
        click.confirm(f"Forget the fingerprint for {target}?", abort=True)

    async def clear() -> bool:
        repository = _repository(config, lock_file)
        try:
            return await repository.clear(target)
        finally:
            await repository.close()

    if asyncio.run(clear()):
        click.echo(f"fingerprint for {target} removed")
    else:
        click.echo(f"no fingerprint recorded for {target}")


@main.command("generate")
@click.argument("secret_type", default=SecretType.RANDOM.value)
def generate_command(secret_type: str) -> None:
    """Generate a secret locally and print its digest and metadata (never the value)."""
    secret = generate_secret(secret_type)
    if secret.type.value != secret_type.strip().lower():
        console.print(f"[yellow]Unknown type {secret_type!r}, using {secret.type.value}[/yellow]")
    click.echo(json.dumps(secret.to_public_dict(), indent=2))


@main.command("produce")
@click.argument("args", nargs=-1)
@click.option("--store-backend", "store_path", envvar="SECRET_HANDOFF_STORE", required=True,
              help="Store factory 'package.module:callable' taking ProducerCredentials")
def produce_command(args: tuple[str, ...], store_path: str) -> None:
    """Enclave entry point: generate and push a secret, write result.json."""
    env = producer_environment()
    try:
        factory = load_object(store_path, setting="SECRET_HANDOFF_STORE")
    except SecretHandoffError as exc:
        _fail(exc)
        return
    asyncio.run(
        run_producer(
            " ".join(args),
            developer_secret=env["developer_secret"],
            store_factory=factory,
            output_dir=Path(env["output_dir"]),
            default_consumer=env["default_consumer"],
        )
    )


@main.command("consume")
@click.argument("args", nargs=-1)
def consume_command(args: tuple[str, ...]) -> None:
    """Enclave entry point: report the digest of the provisioned secret."""
    env = consumer_environment()
    run_consumer(" ".join(args), secret_value=env["secret_value"], output_dir=Path(env["output_dir"]))


if __name__ == "__main__":
    main()
