"""
Pipeline run commands.
"""

import sys

import click
from tabulate import tabulate

from db import Database, RunInProgressError
from llm.openai_client import GenerationError, TextGenerator
from processors.pipeline import IngestionPipeline, RoundtablePipeline, ViewpointPipeline


def _text_generator(db: Database) -> TextGenerator:
    """Text generator logging into db, or exit if the client cannot be created."""
    try:
        return TextGenerator(db=db)
    except GenerationError as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        click.echo("Set OPENAI_API_KEY in your environment or .env file")
        sys.exit(1)


def _execute(pipeline, force: bool):
    """Run a pipeline, turning a refused run into a CLI error."""
    try:
        return pipeline.run(force=force)
    except RunInProgressError as e:
        click.echo(click.style(f"✗ {e}", fg="yellow"))
        click.echo("Use --force to start anyway")
        sys.exit(1)


def _report(summary, rows):
    """Print the run summary table and exit non-zero on run-level failure."""
    click.echo(f"\n{click.style('Summary:', bold=True)}")
    click.echo(tabulate(rows, tablefmt='plain'))

    if summary.status != 'completed':
        click.echo(click.style(f"\n✗ Run failed: {summary.error_message}", fg="red"))
        sys.exit(1)

    click.echo(click.style(f"\n✓ Run {summary.run_id} completed", fg="green"))


@click.group()
def run():
    """Run the ingestion and viewpoint pipelines."""
    pass


@run.command()
@click.option('--force', is_flag=True, default=False, help='Start even if another ingestion run is in progress')
@click.option('--max-items', '-m', type=int, help='Maximum items taken from each source')
def ingest(force, max_items):
    """
    Poll every enabled source, then store, extract and summarize new articles.

    Example:
        hitintel run ingest
        hitintel run ingest --max-items 5
    """
    db = Database()
    generator = _text_generator(db)

    summary = _execute(IngestionPipeline(db, generator, max_items_per_source=max_items), force)

    _report(summary, [
        ['Sources checked', summary.sources_checked],
        ['Source errors', click.style(str(summary.source_errors), fg='red') if summary.source_errors else 0],
        ['Candidates found', summary.candidates_found],
        ['Duplicates skipped', summary.duplicates_skipped],
        ['Articles processed', click.style(str(summary.articles_processed), fg='green')],
        ['Entities extracted', summary.entities_extracted],
        ['Summaries generated', summary.summaries_generated],
        ['Warnings', click.style(str(summary.warnings), fg='yellow') if summary.warnings else 0],
        ['Errors', click.style(str(summary.errors), fg='red') if summary.errors else 0],
    ])


@run.command()
@click.option('--force', is_flag=True, default=False, help='Start even if another viewpoint run is in progress')
@click.option('--threshold', '-t', type=click.IntRange(1, 10), help='Minimum relevance score (default: RELEVANCE_THRESHOLD)')
@click.option('--limit', '-l', type=int, help='Maximum number of articles (default: VIEWPOINT_BATCH_LIMIT)')
def viewpoints(force, threshold, limit):
    """
    Generate analyst viewpoints and audience briefs for relevant articles.

    Example:
        hitintel run viewpoints --threshold 7
    """
    db = Database()
    generator = _text_generator(db)

    summary = _execute(ViewpointPipeline(db, generator, threshold=threshold, limit=limit), force)

    _report(summary, [
        ['Articles found', summary.articles_found],
        ['Analyst viewpoints', click.style(str(summary.analyst_viewpoints), fg='green')],
        ['Briefs generated', click.style(str(summary.briefs_generated), fg='green')],
        ['Total viewpoints', summary.total_viewpoints],
        ['Warnings', click.style(str(summary.warnings), fg='yellow') if summary.warnings else 0],
        ['Errors', click.style(str(summary.errors), fg='red') if summary.errors else 0],
    ])


@run.command()
@click.option('--force', is_flag=True, default=False, help='Start even if another roundtable run is in progress')
@click.option('--limit', '-l', type=int, help='Maximum number of articles (default: ROUNDTABLE_BATCH_LIMIT)')
def roundtable(force, limit):
    """
    Combine the analysts' viewpoints into roundtable discussions.

    Only articles with a viewpoint from every enabled analyst qualify.
    Use 'hitintel article viewpoint' to fill in missing analysts.
    """
    db = Database()
    generator = _text_generator(db)

    summary = _execute(RoundtablePipeline(db, generator, limit=limit), force)

    _report(summary, [
        ['Articles found', summary.articles_found],
        ['Roundtables generated', click.style(str(summary.roundtables_generated), fg='green')],
        ['Warnings', click.style(str(summary.warnings), fg='yellow') if summary.warnings else 0],
        ['Errors', click.style(str(summary.errors), fg='red') if summary.errors else 0],
    ])


@run.command(name='list')
@click.option('--limit', '-l', default=10, help='Number of runs to show (default: 10)')
def list_runs(limit):
    """List recent pipeline runs."""
    db = Database()
    runs = db.get_recent_runs(limit)

    if not runs:
        click.echo(click.style("No runs found", fg="yellow"))
        return

    status_colors = {'completed': 'green', 'processing': 'cyan', 'error': 'red'}
    table_data = []
    for r in runs:
        duration = 'N/A'
        if r.completed_at:
            duration = f"{(r.completed_at - r.started_at).total_seconds():.0f}s"
        table_data.append([
            r.run_id[:12],
            r.pipeline.value,
            click.style(r.status, fg=status_colors.get(r.status, 'white')),
            r.started_at.strftime('%Y-%m-%d %H:%M:%S'),
            duration,
            (r.error_message or '')[:50],
        ])

    click.echo()
    click.echo(tabulate(
        table_data,
        headers=['Run', 'Pipeline', 'Status', 'Started', 'Duration', 'Error'],
        tablefmt='simple'
    ))
    click.echo()
