"""Command-line interface for the reward flow tracker."""

import sys
from dataclasses import replace
from typing import Optional
import click
import structlog

from inflation_tracker import __version__
from inflation_tracker.core.errors import TrackerError
from inflation_tracker.core.tracker import InflationTracker
from inflation_tracker.models.config import TrackerConfig
from inflation_tracker.scheduler import TrackerScheduler
from inflation_tracker.storage.file_storage import FileStorage
from inflation_tracker.utils.address_import import (
    FORMATS,
    clean_address,
    import_addresses,
    parse_nominators_csv,
)
from inflation_tracker.utils.amounts import short_address
from inflation_tracker.utils.logging import setup_logging

logger = structlog.get_logger(__name__)

SAMPLE_SIZE = 5


def _fail(message: str) -> None:
    logger.error("Command failed", reason=message)
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


def _build_tracker(config: TrackerConfig) -> InflationTracker:
    try:
        return InflationTracker.from_config(config)
    except TrackerError as e:
        _fail(f"Failed to initialize tracker: {e}")


def _show_sample(receivers) -> None:
    click.echo("\nSample addresses:")
    for receiver in receivers[:SAMPLE_SIZE]:
        click.echo(f"  {receiver.rank}. {receiver.address}")
    if len(receivers) > SAMPLE_SIZE:
        click.echo(f"  ... and {len(receivers) - SAMPLE_SIZE} more")


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--log-level', '-l', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: Optional[str]):
    """Polkadot reward flow and sell pressure tracker CLI."""
    ctx.ensure_object(dict)

    try:
        if config_file:
            config = TrackerConfig(_env_file=config_file)
        else:
            config = TrackerConfig()

        if log_level:
            config.log_level = log_level

        ctx.obj['config'] = config

    except ValueError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    setup_logging(config)


@cli.command()
@click.option('--once', is_flag=True, help='Run a single tracking cycle and exit')
@click.pass_context
def track(ctx, once: bool):
    """Run tracking cycles on the configured schedule."""
    config = ctx.obj['config']
    tracker = _build_tracker(config)

    try:
        if once:
            result = tracker.run_cycle()
            click.echo(tracker.format_quick_summary(result.analysis))
        else:
            click.echo(f"🔄 Tracking every {config.tracking_interval_minutes} minutes, "
                       f"reporting every {config.report_interval_hours} hours")
            click.echo("Press Ctrl+C to stop...")
            TrackerScheduler(tracker).start()
    except TrackerError as e:
        _fail(f"Tracking failed: {e}")
    finally:
        tracker.close()


@cli.command()
@click.option('--hours', type=int, default=None,
              help='Hours of history to analyze (default: configured window)')
@click.pass_context
def analyze(ctx, hours: Optional[int]):
    """Run one tracking cycle and print the analysis."""
    config = ctx.obj['config']
    tracker = _build_tracker(config)

    try:
        result = tracker.run_cycle(hours=hours)
    except TrackerError as e:
        _fail(f"Analysis failed: {e}")
    finally:
        tracker.close()

    analysis = result.analysis
    click.echo(tracker.format_quick_summary(analysis))
    click.echo(f"📊 Collection completeness: rewards {result.reward_report.completeness:.0%}, "
               f"transfers {result.transfer_report.completeness:.0%}")
    click.echo(f"📊 Exchange deposits: {result.flow_summary.deposit_count}, "
               f"withdrawals: {result.flow_summary.withdrawal_count}")

    for pattern in analysis.patterns:
        click.echo(f"🚨 [{pattern.severity.upper()}] {pattern.description}")

    if analysis.top_sellers:
        click.echo("\nTop sellers:")
        for seller in analysis.top_sellers[:SAMPLE_SIZE]:
            quick = " (Quick Sell)" if seller.quick_sell else ""
            click.echo(f"  {short_address(seller.address)}: {float(seller.amount):,.2f} DOT{quick}")


@cli.command()
@click.option('--type', 'report_type', default='daily', help='Report type used in file names')
@click.pass_context
def report(ctx, report_type: str):
    """Generate a report from the latest stored analysis."""
    tracker = _build_tracker(ctx.obj['config'])
    try:
        rendered = tracker.generate_report(report_type)
    finally:
        tracker.close()

    if rendered is None:
        _fail("No analysis available, run 'track --once' or 'analyze' first")

    click.echo(rendered.text)
    click.echo(f"✅ Saved {report_type} report")


@cli.command('fetch-receivers')
@click.option('--limit', '-n', type=int, default=None, help='Number of receivers to fetch')
@click.pass_context
def fetch_receivers(ctx, limit: Optional[int]):
    """Discover top reward receivers and store them as the cohort."""
    tracker = _build_tracker(ctx.obj['config'])
    try:
        receivers = tracker.refresh_cohort(limit)
    except TrackerError as e:
        _fail(f"Receiver discovery failed: {e}")
    finally:
        tracker.close()

    click.echo(f"✅ Stored {len(receivers)} reward receivers")
    _show_sample(receivers)


@cli.command('import-receivers')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--format', 'fmt', default='auto',
              type=click.Choice(('auto',) + FORMATS),
              help='Input format (default: detect)')
@click.pass_context
def import_receivers(ctx, path: str, fmt: str):
    """Import cohort addresses from a file."""
    try:
        receivers = import_addresses(path, fmt)
    except TrackerError as e:
        _fail(f"Import failed: {e}")

    storage = FileStorage(ctx.obj['config'].data_dir)
    if not storage.save_cohort(receivers):
        _fail("Failed to save imported receivers")

    click.echo(f"✅ Imported {len(receivers)} addresses")
    _show_sample(receivers)


@cli.command('import-nominators')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--limit', '-n', type=int, default=300, help='Maximum nominators to import')
@click.pass_context
def import_nominators(ctx, path: str, limit: int):
    """Import the cohort from a ranked nominator CSV export."""
    with open(path, 'r', encoding='utf-8') as f:
        receivers = parse_nominators_csv(f.read(), limit)

    if not receivers:
        _fail(f"No valid nominator addresses found in {path}")

    storage = FileStorage(ctx.obj['config'].data_dir)
    if not storage.save_cohort(receivers):
        _fail("Failed to save imported nominators")

    total_rewards = sum(float(r.total_rewards) for r in receivers)
    click.echo(f"✅ Imported {len(receivers)} nominators ({total_rewards:,.2f} DOT staking rewards)")
    _show_sample(receivers)


@cli.command('clean-receivers')
@click.pass_context
def clean_receivers(ctx):
    """Strip explorer link markup from stored cohort addresses."""
    storage = FileStorage(ctx.obj['config'].data_dir)
    receivers = storage.load_cohort()
    if not receivers:
        _fail("No stored receivers to clean")

    cleaned = []
    changed = 0
    for receiver in receivers:
        address = clean_address(receiver.address) or receiver.address
        if address != receiver.address:
            changed += 1
            receiver = replace(receiver, address=address)
        cleaned.append(receiver)

    if changed and not storage.save_cohort(cleaned):
        _fail("Failed to save cleaned receivers")

    click.echo(f"✅ Cleaned {changed} of {len(cleaned)} addresses")


@cli.command()
def version():
    """Show version information."""
    click.echo(f"Reward Flow Tracker v{__version__}")


if __name__ == '__main__':
    cli()
