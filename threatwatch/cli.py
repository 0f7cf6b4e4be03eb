"""
ThreatWatch Command Line Interface
==================================

Usage:
    threatwatch --help                 # Show all commands
    threatwatch check-config           # Validate configuration
    threatwatch init-db                # Initialize database
    threatwatch refresh-feeds          # Run one ingestion cycle
    threatwatch threat-level           # Show the current threat level
    threatwatch recent --days 3        # List recent articles
    threatwatch analytics              # Show aggregate statistics
    threatwatch watch --duration 600   # Stream change events to the console
    threatwatch cleanup --days 90      # Delete old articles
"""

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .config.settings import ThreatWatchSettings, get_settings
from .database.connection import DatabaseConnection, get_db_manager
from .database.models import AustralianState, NewsCategory
from .database.schema import DatabaseSchema
from .processing.pipeline import IngestionPipeline
from .services.analytics import AnalyticsService
from .services.events import DomainEvent, NewsUpdateEvent, ThreatUpdateEvent
from .services.update_tracker import UpdateTracker
from .storage.article_repository import ArticleRepository
from .storage.threat_level_repository import ThreatLevelRepository
from .threat.cache import ThreatLevelCache
from .threat.fetcher import ThreatLevelFetcher
from .utils.exceptions import ThreatWatchError
from .utils.logging import configure_application_logging

console = Console()


@dataclass
class AppContext:
    """Wired application services sharing one database manager."""
    settings: ThreatWatchSettings
    db: DatabaseConnection
    articles: ArticleRepository
    threat_levels: ThreatLevelRepository
    threat_cache: ThreatLevelCache
    tracker: UpdateTracker
    pipeline: IngestionPipeline


def build_app(settings: Optional[ThreatWatchSettings] = None) -> AppContext:
    """Create schema if needed and wire all services together."""
    settings = settings or get_settings()

    DatabaseSchema(settings.database.path).create_tables()
    db = get_db_manager(settings.database.path, pool_size=settings.database.pool_size)

    articles = ArticleRepository(db)
    threat_levels = ThreatLevelRepository(db)
    threat_cache = ThreatLevelCache.from_settings(
        ThreatLevelFetcher(threat_settings=settings.threat, timeout=settings.limits.request_timeout),
        threat_levels,
        settings,
    )
    tracker = UpdateTracker.from_settings(threat_cache, articles, settings)
    pipeline = IngestionPipeline(articles, tracker=tracker, settings=settings)

    return AppContext(
        settings=settings,
        db=db,
        articles=articles,
        threat_levels=threat_levels,
        threat_cache=threat_cache,
        tracker=tracker,
        pipeline=pipeline,
    )


def _configure_logging(settings: ThreatWatchSettings, debug: bool) -> None:
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


def _fail(message: str) -> None:
    console.print(f"[bold red]❌ {message}[/bold red]")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """ThreatWatch - national threat level and security news monitor."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        return

    if ctx.invoked_subcommand != 'check-config':
        try:
            _configure_logging(get_settings(), debug)
        except ThreatWatchError as e:
            _fail(f"Configuration error: {e}")


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking ThreatWatch Configuration[/bold blue]")

    try:
        settings = get_settings()
    except ThreatWatchError as e:
        _fail(f"Configuration error: {e}")
        return

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Details")

    table.add_row("Database", f"{settings.database.path} (pool {settings.database.pool_size})")
    table.add_row("Feeds", ", ".join(source.name for source in settings.feeds.sources) or "none")
    table.add_row("Threat page", settings.threat.url)
    table.add_row(
        "Threat cache",
        f"TTL {settings.threat.cache_ttl_seconds}s, max stale {settings.threat.max_stale_seconds}s"
    )
    table.add_row("Tracker", f"poll every {settings.tracker.poll_interval_seconds}s")
    table.add_row("Logging", f"{settings.get_effective_log_level()} -> {settings.logging.file_path or 'console'}")

    console.print(table)
    console.print("[bold green]✅ Configuration is valid[/bold green]")


@cli.command()
def init_db():
    """Initialize database schema."""
    console.print("[bold blue]🗄️ Initializing ThreatWatch Database[/bold blue]")

    settings = get_settings()
    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if not schema.verify_schema():
        _fail("Database schema verification failed")

    info = get_db_manager(settings.database.path).get_database_info()

    info_table = Table(title="Database Information")
    info_table.add_column("Table", style="cyan")
    info_table.add_column("Rows", justify="right")
    for table_name, count in info['table_counts'].items():
        info_table.add_row(table_name, str(count))

    console.print(info_table)
    console.print(f"[bold green]✅ Database initialized ({info['database_size_mb']:.2f} MB)[/bold green]")


@cli.command()
def refresh_feeds():
    """Fetch all feeds and store new relevant articles."""
    console.print("[bold blue]📡 Refreshing feeds[/bold blue]")
    app = build_app()

    summary = asyncio.run(app.pipeline.refresh_all_feeds())

    table = Table(title="Ingestion Summary")
    table.add_column("Fetched", justify="right")
    table.add_column("Relevant", justify="right")
    table.add_column("Inserted", justify="right", style="green")
    table.add_row(str(summary.fetched), str(summary.relevant), str(summary.inserted))
    console.print(table)


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of a table')
def threat_level(as_json):
    """Show the current national terrorism threat level."""
    app = build_app()

    try:
        threat = asyncio.run(app.threat_cache.get_threat_level())
    except ThreatWatchError as e:
        _fail(e.user_message)
        return

    if as_json:
        click.echo(json.dumps(threat.to_dict(), indent=2))
        return

    table = Table(title="National Terrorism Threat Level")
    table.add_column("Level", justify="center", style="bold")
    table.add_column("Name", style="bold red")
    table.add_column("Source", style="cyan")
    table.add_column("Fetched")
    table.add_row(str(threat.level), threat.name, threat.source.value, threat.fetched_at.isoformat())
    console.print(table)
    if threat.description:
        console.print(threat.description)
    console.print(f"🔗 {threat.link}")


@cli.command()
@click.option('--days', default=7, show_default=True, help='Publication window in days')
@click.option('--category', type=click.Choice([c.value for c in NewsCategory]), help='Filter by category')
@click.option('--state', type=click.Choice([s.value for s in AustralianState]), help='Filter by state')
@click.option('--limit', default=20, show_default=True, help='Maximum articles to show')
def recent(days, category, state, limit):
    """List recently published articles."""
    app = build_app()

    articles = asyncio.run(app.pipeline.get_recent_articles(
        days=days,
        category=NewsCategory(category) if category else None,
        state=AustralianState(state) if state else None,
        limit=limit,
    ))

    if not articles:
        console.print("[yellow]No articles found[/yellow]")
        return

    table = Table(title=f"Articles from the last {days} day(s)")
    table.add_column("Published", style="dim")
    table.add_column("Category", style="cyan")
    table.add_column("State")
    table.add_column("Source")
    table.add_column("Title")
    for article in articles:
        table.add_row(
            article.published_at.strftime("%Y-%m-%d %H:%M"),
            article.category.value,
            article.state.value if article.state else "-",
            article.source_name,
            article.title,
        )
    console.print(table)


@cli.command()
@click.option('--timeline-days', default=90, show_default=True)
@click.option('--volume-days', default=30, show_default=True)
@click.option('--distribution-days', default=30, show_default=True)
@click.option('--json', 'as_json', is_flag=True, help='Print JSON instead of tables')
def analytics(timeline_days, volume_days, distribution_days, as_json):
    """Show threat timeline, news volume and distributions."""
    app = build_app()
    data = AnalyticsService(app.db).get_analytics_data(timeline_days, volume_days, distribution_days)

    if as_json:
        click.echo(json.dumps(data.to_dict(), indent=2))
        return

    summary = data.summary
    summary_table = Table(title="Summary")
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value")
    summary_table.add_row("Threat level", f"{summary.current_threat_level} ({summary.current_threat_name})")
    summary_table.add_row("Total articles", str(summary.total_articles))
    summary_table.add_row("Last 24h", str(summary.articles_last_24h))
    summary_table.add_row("Last 7 days", str(summary.articles_last_7d))
    summary_table.add_row("Most active state", summary.most_active_state or "-")
    summary_table.add_row("Dominant category", summary.dominant_category or "-")
    console.print(summary_table)

    state_table = Table(title=f"States (last {distribution_days} days)")
    state_table.add_column("State", style="cyan")
    state_table.add_column("Articles", justify="right")
    state_table.add_column("%", justify="right")
    for row in data.state_distribution:
        state_table.add_row(row.state, str(row.count), str(row.percentage))
    console.print(state_table)

    category_table = Table(title=f"Categories (last {distribution_days} days)")
    category_table.add_column("Category", style="cyan")
    category_table.add_column("Articles", justify="right")
    category_table.add_column("%", justify="right")
    for row in data.category_distribution:
        category_table.add_row(row.category, str(row.count), str(row.percentage))
    console.print(category_table)


def _print_event(event: DomainEvent) -> None:
    if isinstance(event, ThreatUpdateEvent):
        previous = event.data.previous_level
        console.print(
            f"[bold red]⚠️ Threat level {event.data.level} ({event.data.name})[/bold red]"
            + (f" was {previous}" if previous is not None else "")
        )
    elif isinstance(event, NewsUpdateEvent):
        title = f": {event.data.latest_title}" if event.data.latest_title else ""
        console.print(f"[bold green]📰 {event.data.count} new article(s){title}[/bold green]")
    else:
        raise TypeError(f"Unhandled event type: {type(event).__name__}")


@cli.command()
@click.option('--duration', default=0, show_default=True, help='Seconds to watch (0 = until interrupted)')
@click.option('--refresh-interval', default=0, show_default=True,
              help='Also refresh feeds every N seconds (0 = never)')
def watch(duration, refresh_interval):
    """Stream threat and news change events to the console."""
    app = build_app()

    async def run_watch():
        unsubscribe = app.tracker.subscribe(_print_event)
        console.print(
            f"[bold blue]👀 Watching for changes every {app.tracker.poll_interval}s[/bold blue]"
        )

        async def refresh_loop():
            while True:
                await asyncio.sleep(refresh_interval)
                await app.pipeline.refresh_all_feeds()

        refresher = asyncio.create_task(refresh_loop()) if refresh_interval > 0 else None
        try:
            if duration > 0:
                await asyncio.sleep(duration)
            else:
                await asyncio.Event().wait()
        finally:
            if refresher is not None:
                refresher.cancel()
            unsubscribe()

    try:
        asyncio.run(run_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Stopped watching[/yellow]")


@cli.command()
@click.option('--days', default=90, show_default=True, help='Keep articles published within this many days')
def cleanup(days):
    """Delete articles older than the retention window."""
    console.print("[bold blue]🧹 ThreatWatch Database Cleanup[/bold blue]")
    app = build_app()

    initial = app.db.get_database_info()
    deleted = app.db.cleanup_old_articles(days_to_keep=days)
    console.print(f"Deleted {deleted} old articles")
    console.print(
        f"Articles remaining: {app.db.get_database_info()['table_counts']['news_articles']} "
        f"(was {initial['table_counts']['news_articles']})"
    )


def main() -> None:
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 ThreatWatch interrupted by user[/yellow]")
        sys.exit(130)
