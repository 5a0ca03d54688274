"""
News source management commands.
"""

import click
from tabulate import tabulate

from db import Database


@click.group()
def source():
    """Manage the news sources polled by the ingestion run."""
    pass


@source.command(name='list')
@click.option('--enabled', is_flag=True, help='Show only enabled sources')
def list_sources(enabled):
    """
    List registered sources in polling order.

    Example:
        hitintel source list
    """
    db = Database()
    sources = db.get_enabled_sources() if enabled else db.get_sources()

    if not sources:
        click.echo(click.style("No sources found. Run 'hitintel init' to add the defaults.", fg="yellow"))
        return

    table_data = []
    for s in sources:
        state = click.style('✓', fg='green') if s.enabled else click.style('✗', fg='red')
        errors = click.style(str(s.error_count), fg='red') if s.error_count else 0
        checked = s.last_checked_at.strftime('%Y-%m-%d %H:%M') if s.last_checked_at else 'never'
        table_data.append([s.id, state, s.name, s.kind.value, s.priority.value, errors, checked])

    click.echo()
    click.echo(tabulate(
        table_data,
        headers=['ID', 'On', 'Name', 'Kind', 'Priority', 'Errors', 'Last checked'],
        tablefmt='simple'
    ))
    click.echo()


@source.command()
@click.argument('name')
@click.argument('url')
@click.option('--kind', '-k', type=click.Choice(['rss', 'sitemap', 'scrape']), default='rss', help='Source kind (default: rss)')
@click.option('--feed-url', help='Feed URL (defaults to URL for rss sources)')
@click.option('--selector', '-s', help='CSS selector of the article items on a scraped page')
@click.option('--priority', '-p', type=click.Choice(['high', 'medium', 'low']), default='medium', help='Polling priority (default: medium)')
def add(name, url, kind, feed_url, selector, priority):
    """
    Register a new source.

    Example:
        hitintel source add "Fierce Healthcare" https://www.fiercehealthcare.com/rss/xml
        hitintel source add "Vendor News" https://example.com/news --kind scrape -s ".post"
    """
    if kind == 'rss' and not feed_url:
        feed_url = url

    db = Database()
    if db.add_source(name, url, kind, feed_url=feed_url, scrape_selector=selector, priority=priority):
        click.echo(click.style(f"✓ Source added: {name}", fg="green"))
    else:
        click.echo(click.style(f"✗ A source named '{name}' already exists", fg="yellow"))


@source.command()
@click.argument('name')
def enable(name):
    """Enable a source."""
    db = Database()
    if db.set_source_enabled(name, True):
        click.echo(click.style(f"✓ Enabled: {name}", fg="green"))
    else:
        click.echo(click.style(f"✗ Source '{name}' not found", fg="red"))


@source.command()
@click.argument('name')
def disable(name):
    """Disable a source. Its articles are kept."""
    db = Database()
    if db.set_source_enabled(name, False):
        click.echo(click.style(f"✓ Disabled: {name}", fg="green"))
    else:
        click.echo(click.style(f"✗ Source '{name}' not found", fg="red"))
