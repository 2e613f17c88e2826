#!/usr/bin/env python3
"""
Tevi Vesting CLI - local ledger operations

Runs one ledger operation per invocation against a JSON state file:

    tevi-vesting init --owner 0xadmin
    tevi-vesting mint 0xadmin 1500
    tevi-vesting configure --admin 0xadmin --preset private_investor \
        --asset 0xasset --start-time 1741856400
    tevi-vesting whitelist --admin 0xadmin --entry 0xalice=1000 --entry 0xbob=500
    tevi-vesting deposit --admin 0xadmin 1500
    tevi-vesting start --admin 0xadmin
    tevi-vesting claim 0xalice
"""

from __future__ import annotations

import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tevi_vesting.core.config import ConfigurationError, VestingSettings
from tevi_vesting.core.controller import VestingController
from tevi_vesting.core.exceptions import VestingError
from tevi_vesting.core.logging_config import setup_logging_from_settings
from tevi_vesting.core.presets import PRESETS, get_preset
from tevi_vesting.core.state_store import (
    StateFileError,
    load_controller,
    new_controller,
    save_controller,
)

logger = logging.getLogger(__name__)
console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=not isinstance(exc, VestingError))
    if isinstance(exc, VestingError):
        console.print(f"[bold red]Error ({exc.code}):[/] {exc.message}", highlight=False)
    else:
        console.print(f"[bold red]Error:[/] {exc}", highlight=False)
    sys.exit(exit_code)


def _emit_payload(ctx: click.Context, payload: Dict[str, Any], title: str) -> None:
    """Render payload as JSON or a rich key/value table."""
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return

    table = Table(box=box.SIMPLE, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in payload.items():
        table.add_row(str(key), json.dumps(value) if isinstance(value, (dict, list)) else str(value))
    console.print(Panel(table, title=title, border_style="cyan"))


def _load(ctx: click.Context) -> VestingController:
    return load_controller(
        ctx.obj["state_path"],
        settings=ctx.obj["settings"],
        time_provider=ctx.obj["time_provider"],
    )


def _save(ctx: click.Context, controller: VestingController) -> None:
    save_controller(controller, ctx.obj["state_path"])


def _parse_entry(raw: str) -> Tuple[str, int]:
    address, sep, amount = raw.partition("=")
    if not sep or not address.strip():
        raise click.BadParameter(f"Expected ADDRESS=AMOUNT, got {raw!r}", param_hint="--entry")
    try:
        return address.strip(), int(amount.strip())
    except ValueError:
        raise click.BadParameter(f"Amount in {raw!r} is not an integer", param_hint="--entry") from None


def _read_whitelist_file(path: Path) -> List[Tuple[str, int]]:
    """Read ``address,amount`` rows (CSV) or an address->amount mapping (YAML/JSON)."""
    if path.suffix.lower() == ".csv":
        entries = []
        with path.open("r", encoding="utf-8", newline="") as handle:
            for row in csv.reader(handle):
                if not row or row[0].strip().startswith("#") or row[0].strip().lower() == "address":
                    continue
                if len(row) < 2:
                    raise click.ClickException(f"Malformed whitelist row in {path}: {row!r}")
                entries.append(_parse_entry(f"{row[0]}={row[1]}"))
        return entries

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if isinstance(data, dict):
        items = data.items()
    elif isinstance(data, list):
        items = [(item.get("address"), item.get("amount")) for item in data if isinstance(item, dict)]
    else:
        raise click.ClickException(f"Whitelist file {path} must contain a mapping or a list.")
    entries = []
    for address, amount in items:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise click.ClickException(f"Amount for {address!r} in {path} must be an integer")
        entries.append((str(address), amount))
    return entries


@click.group()
@click.option(
    "--state",
    "state_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Ledger state file (defaults to TEVI_STATE_FILE or ./tevi_vesting_state.json).",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file; environment variables override it.",
)
@click.option("--now", type=int, default=None, help="Override the current unix time.")
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option("--verbose", is_flag=True, help="Stream JSON logs to stderr")
@click.pass_context
def cli(
    ctx: click.Context,
    state_path: Optional[Path],
    config_file: Optional[Path],
    now: Optional[int],
    json_output: bool,
    verbose: bool,
):
    """Tevi token vesting ledger."""
    ctx.ensure_object(dict)
    try:
        settings = VestingSettings.from_yaml(config_file) if config_file else VestingSettings.from_env()
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    setup_logging_from_settings(settings, enable_console=verbose)

    ctx.obj["settings"] = settings
    ctx.obj["state_path"] = state_path or Path(settings.state_file)
    ctx.obj["time_provider"] = (lambda: now) if now is not None else None
    ctx.obj["json_output"] = json_output


@cli.command("init")
@click.option("--owner", required=True, help="Initial admin address")
@click.option("--address", default=None, help="Custody address (derived from owner if omitted)")
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
@click.pass_context
def init_ledger(ctx: click.Context, owner: str, address: Optional[str], force: bool):
    """Create a new, unconfigured ledger."""
    path: Path = ctx.obj["state_path"]
    if path.exists() and not force:
        _cli_fail(StateFileError(f"State file {path} already exists; pass --force to overwrite"))
    controller = new_controller(owner, settings=ctx.obj["settings"], address=address)
    _save(ctx, controller)
    _emit_payload(ctx, {"address": controller.address, "owner": controller.authority.owner, "state": str(path)}, "Ledger created")


@cli.command("mint")
@click.argument("address")
@click.argument("amount", type=int)
@click.option("--asset", default=None, help="Asset id (defaults to the configured asset)")
@click.pass_context
def mint(ctx: click.Context, address: str, amount: int, asset: Optional[str]):
    """Credit an account in the local treasury."""
    try:
        controller = _load(ctx)
        schedule = controller.schedule()
        asset_id = asset or (schedule.asset_id if schedule else None)
        if not asset_id:
            raise click.ClickException("No asset configured; pass --asset")
        controller.treasury.mint(address, asset_id, amount)
        _save(ctx, controller)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(
        ctx,
        {"address": address.lower(), "asset_id": asset_id, "balance": controller.treasury.balance_of(address, asset_id)},
        "Minted",
    )


@cli.command("configure")
@click.option("--admin", required=True, help="Admin address")
@click.option("--asset", required=True, help="Asset id to disburse")
@click.option("--start-time", type=int, required=True, help="Unix time at which periods start counting")
@click.option("--preset", type=click.Choice(sorted(PRESETS)), default=None, help="Named schedule")
@click.option("--cliff", "cliff_periods", type=int, default=None, help="Cliff length in epochs")
@click.option("--initial-bps", "initial_unlock_bps", type=int, default=None, help="Initial unlock in basis points")
@click.option("--linear", "linear_periods", type=int, default=None, help="Linear release length in epochs")
@click.option("--epoch", "epoch_seconds", type=int, default=None, help="Epoch length in seconds")
@click.pass_context
def configure(
    ctx: click.Context,
    admin: str,
    asset: str,
    start_time: int,
    preset: Optional[str],
    cliff_periods: Optional[int],
    initial_unlock_bps: Optional[int],
    linear_periods: Optional[int],
    epoch_seconds: Optional[int],
):
    """Set the vesting schedule (explicit values override the preset)."""
    params = {
        "cliff_periods": cliff_periods,
        "initial_unlock_bps": initial_unlock_bps,
        "linear_periods": linear_periods,
        "epoch_seconds": epoch_seconds,
    }
    if preset:
        base = get_preset(preset)
        for key in params:
            if params[key] is None:
                params[key] = getattr(base, key)
    missing = [key for key, value in params.items() if value is None]
    if missing:
        raise click.UsageError(f"Missing schedule parameters: {', '.join(missing)} (or use --preset)")

    try:
        controller = _load(ctx)
        schedule = controller.configure_vesting(admin, asset_id=asset, start_time=start_time, **params)
        _save(ctx, controller)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(ctx, schedule.to_dict(), "Vesting configured")


@cli.command("deposit")
@click.option("--admin", required=True, help="Admin address")
@click.argument("amount", type=int)
@click.pass_context
def deposit(ctx: click.Context, admin: str, amount: int):
    """Move tokens from the admin into custody."""
    try:
        controller = _load(ctx)
        held = controller.deposit(admin, amount)
        _save(ctx, controller)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(
        ctx,
        {"deposited": amount, "held_balance": held, "amount_needed_to_fund": controller.amount_needed_to_fund()},
        "Deposit",
    )


@cli.command("whitelist")
@click.option("--admin", required=True, help="Admin address")
@click.option("--entry", "entries", multiple=True, help="ADDRESS=AMOUNT (repeatable)")
@click.option(
    "--file",
    "whitelist_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="CSV (address,amount) or YAML/JSON mapping of address to amount",
)
@click.pass_context
def whitelist(ctx: click.Context, admin: str, entries: Tuple[str, ...], whitelist_file: Optional[Path]):
    """Create or overwrite recipient allocations."""
    pairs = [_parse_entry(raw) for raw in entries]
    if whitelist_file:
        pairs.extend(_read_whitelist_file(whitelist_file))
    if not pairs:
        raise click.UsageError("Provide at least one --entry or a --file")

    try:
        controller = _load(ctx)
        count = controller.batch_whitelist(admin, [a for a, _ in pairs], [v for _, v in pairs])
        _save(ctx, controller)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(
        ctx,
        {
            "whitelisted": count,
            "total_allocated": controller.total_allocated(),
            "amount_needed_to_fund": controller.amount_needed_to_fund(),
        },
        "Whitelist updated",
    )


@cli.command("start")
@click.option("--admin", required=True, help="Admin address")
@click.pass_context
def start(ctx: click.Context, admin: str):
    """Lock the schedule and open claims."""
    try:
        controller = _load(ctx)
        started_at = controller.start_vesting(admin)
        _save(ctx, controller)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(
        ctx,
        {"started_at": started_at, "next_unlock_time": controller.next_unlock_time()},
        "Vesting started",
    )


@cli.command("claim")
@click.argument("recipient")
@click.pass_context
def claim(ctx: click.Context, recipient: str):
    """Claim everything vested so far."""
    try:
        controller = _load(ctx)
        amount = controller.claim(recipient)
        _save(ctx, controller)
        info = controller.vesting_info(recipient)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(ctx, {"recipient": recipient.lower(), "claimed": amount, **info.to_dict()}, "Claim")


def _set_pause(ctx: click.Context, admin: str, recipient: str, paused: bool) -> None:
    try:
        controller = _load(ctx)
        controller.set_pause(admin, recipient, paused)
        _save(ctx, controller)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(ctx, {"recipient": recipient.lower(), "paused": paused}, "Pause state")


@cli.command("pause")
@click.option("--admin", required=True, help="Admin address")
@click.argument("recipient")
@click.pass_context
def pause(ctx: click.Context, admin: str, recipient: str):
    """Block a recipient from claiming."""
    _set_pause(ctx, admin, recipient, True)


@cli.command("unpause")
@click.option("--admin", required=True, help="Admin address")
@click.argument("recipient")
@click.pass_context
def unpause(ctx: click.Context, admin: str, recipient: str):
    """Allow a paused recipient to claim again."""
    _set_pause(ctx, admin, recipient, False)


@cli.command("transfer-ownership")
@click.option("--admin", required=True, help="Current admin address")
@click.argument("new_owner")
@click.pass_context
def transfer_ownership(ctx: click.Context, admin: str, new_owner: str):
    """Hand admin rights to another address."""
    try:
        controller = _load(ctx)
        controller.authority.transfer_ownership(admin, new_owner)
        _save(ctx, controller)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(ctx, {"owner": controller.authority.owner}, "Ownership transferred")


@cli.command("info")
@click.argument("recipient")
@click.pass_context
def info(ctx: click.Context, recipient: str):
    """Show one recipient's allocation and live claimable amount."""
    try:
        controller = _load(ctx)
        snapshot = controller.vesting_info(recipient)
    except (VestingError, StateFileError) as exc:
        _cli_fail(exc)
    _emit_payload(ctx, {"recipient": recipient.lower(), **snapshot.to_dict()}, "Vesting info")


@cli.command("status")
@click.pass_context
def status(ctx: click.Context):
    """Show schedule, lifecycle flags and funding."""
    try:
        controller = _load(ctx)
    except StateFileError as exc:
        _cli_fail(exc)
    payload = {
        "address": controller.address,
        "owner": controller.authority.owner,
        **controller.schedule_info(),
        "contract_balance": controller.contract_balance(),
        "total_allocated": controller.total_allocated(),
        "amount_needed_to_fund": controller.amount_needed_to_fund(),
        "next_unlock_time": controller.next_unlock_time(),
        "recipients": len(controller.all_recipients()),
    }
    _emit_payload(ctx, payload, "Ledger status")


@cli.command("recipients")
@click.pass_context
def recipients(ctx: click.Context):
    """List every recipient with its allocation."""
    try:
        controller = _load(ctx)
    except StateFileError as exc:
        _cli_fail(exc)
    rows = controller.all_recipients()
    if ctx.obj.get("json_output"):
        click.echo(json.dumps([{"address": a, "total_amount": t} for a, t in rows], indent=2))
        return
    table = Table(title="Recipients", box=box.SIMPLE)
    table.add_column("Address", style="cyan")
    table.add_column("Allocation", style="green", justify="right")
    for address, total in rows:
        table.add_row(address, str(total))
    console.print(table)


@cli.command("events")
@click.pass_context
def events(ctx: click.Context):
    """Show the ledger event log."""
    try:
        controller = _load(ctx)
    except StateFileError as exc:
        _cli_fail(exc)
    items = controller.events.to_list()
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(items, indent=2))
        return
    table = Table(title="Events", box=box.SIMPLE)
    table.add_column("Time", style="cyan")
    table.add_column("Event", style="magenta")
    table.add_column("Data")
    for item in items:
        table.add_row(str(item["timestamp"]), item["event_type"], json.dumps(item["data"]))
    console.print(table)


@cli.command("presets")
@click.pass_context
def presets(ctx: click.Context):
    """List named schedule presets."""
    rows = [
        {
            "name": p.name,
            "cliff_periods": p.cliff_periods,
            "initial_unlock_bps": p.initial_unlock_bps,
            "linear_periods": p.linear_periods,
            "epoch_seconds": p.epoch_seconds,
            "description": p.description,
        }
        for p in PRESETS.values()
    ]
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(rows, indent=2))
        return
    table = Table(title="Schedule presets", box=box.SIMPLE)
    for column in ("name", "cliff_periods", "initial_unlock_bps", "linear_periods", "epoch_seconds"):
        table.add_column(column)
    for row in rows:
        table.add_row(*(str(row[c]) for c in ("name", "cliff_periods", "initial_unlock_bps", "linear_periods", "epoch_seconds")))
    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
