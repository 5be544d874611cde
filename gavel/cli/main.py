"""
Gavel CLI - Command Line Interface for the auction settlement engine

Main entry point for all CLI commands.
"""

import json
from pathlib import Path
from typing import Optional

import click

from gavel.utils.logger import configure_logging, get_logger

logger = get_logger("cli")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--env-file", default=None, help="Load GAVEL_* settings from a .env file")
@click.option("--log-file", default=None, help="Also write logs to this file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, env_file, log_file):
    """Gavel - English auction settlement engine"""
    import logging
    from gavel.core.config import load_config

    level = logging.DEBUG if debug else logging.WARNING
    configure_logging(level=level, log_file=log_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(env_file)


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--data-dir", default=None, help="Persist the demo auction in this directory")
@click.option("--duration", default=3600, type=int, help="Auction duration in seconds")
@click.option("--reset", is_flag=True, help="Replace an auction already stored in --data-dir")
@click.pass_context
def demo(ctx, data_dir: Optional[str], duration: int, reset: bool):
    """Run a scripted auction with a late bid, a refund and a payout"""
    from gavel.core.auction import SettlementEngine
    from gavel.core.clock import ManualClock
    from gavel.core.events import EventRecorder
    from gavel.core.gateway import InMemoryGateway
    from gavel.core.storage import StorageManager

    config = ctx.obj["config"]
    clock = ManualClock(start=1_700_000_000)
    gateway = InMemoryGateway()
    storage = StorageManager(Path(data_dir)) if data_dir else None
    if storage and storage.has_auction():
        if not reset:
            click.echo(f"An auction is already stored in {data_dir}; use --reset to replace it")
            raise SystemExit(1)
        storage.clear()

    engine = SettlementEngine(
        owner="auctioneer",
        beneficiary="seller",
        duration=duration,
        description="Demo lot #1",
        clock=clock,
        gateway=gateway,
        config=config,
        storage_manager=storage,
    )
    recorder = EventRecorder()
    engine.events.subscribe(recorder)

    click.echo("=" * 60)
    click.echo("  GAVEL - AUCTION DEMO")
    click.echo("=" * 60)
    click.echo()

    click.echo(f"Auction '{engine.state.description}' open for {duration}s")
    engine.bid("alice", 100)
    click.echo(f"  alice bids 100, minimum next bid is {engine.get_minimum_bid()}")

    clock.advance(duration // 2)
    engine.bid("bob", 300)
    click.echo(f"  bob bids 300, minimum next bid is {engine.get_minimum_bid()}")

    clock.set(max(clock.now(), engine.state.current_deadline - config.extension_threshold))
    engine.bid("carol", 1000)
    click.echo(f"  carol bids 1000 with {config.extension_threshold}s left")
    click.echo(f"  deadline extended to {engine.state.current_deadline}")
    click.echo()

    clock.set(engine.state.current_deadline)
    winner, amount = engine.finalize("anyone")
    click.echo(f"Finalized: {winner} wins with {amount}")

    for bidder in ("alice", "bob"):
        net = engine.withdraw(bidder)
        click.echo(f"  {bidder} withdraws {net}")
    click.echo()

    click.echo("Transfers:")
    for record in gateway.history:
        click.echo(f"  {record.recipient:<12} {record.amount}")
    click.echo()

    click.echo(f"Events: {len(recorder.events)}")
    click.echo(f"Stats: {json.dumps(engine.stats())}")
    if storage:
        click.echo(f"Saved to: {storage.db_path}")
    click.echo()
    click.echo("Demo complete!")


# =============================================================================
# Show Command
# =============================================================================


@cli.command("show")
@click.option("--data-dir", required=True, help="Directory holding auction.db")
@click.option("--history/--no-history", default=True, help="Include the bid history")
def show(data_dir: str, history: bool):
    """Show a persisted auction as JSON"""
    from gavel.core.auction import SettlementEngine
    from gavel.core.clock import SystemClock
    from gavel.core.gateway import InMemoryGateway
    from gavel.core.storage import StorageManager

    storage = StorageManager(Path(data_dir))
    if not storage.has_auction():
        click.echo(f"No auction found in {data_dir}")
        raise SystemExit(1)

    engine = SettlementEngine.restore(storage, SystemClock(), InMemoryGateway())

    output = {
        "auction": engine.get_auction_info().model_dump(),
        "winner": engine.get_winner_info().model_dump(),
        "bidders": engine.get_all_bidders().model_dump()["bidders"],
        "held": engine.contract_balance(),
    }
    if history:
        output["history"] = engine.get_bid_history().model_dump()

    click.echo(json.dumps(output, indent=2))


# =============================================================================
# Stats Command
# =============================================================================


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show the active auction rules"""
    config = ctx.obj["config"]
    click.echo("Gavel Auction Rules")
    click.echo("-" * 40)
    click.echo(f"  Minimum increment: {config.min_increment_percent}%")
    click.echo(f"  Commission: {config.commission_percent}%")
    click.echo(f"  Extension: +{config.extension_amount}s when <= {config.extension_threshold}s remain")
    click.echo(f"  Grace period: {config.grace_period}s")


if __name__ == "__main__":
    cli()
