"""
Show transcript commands.
"""

import sys
from datetime import datetime

import click

from db import Database
from domain.personas import UnknownPersonaError
from llm.openai_client import GenerationError, TextGenerator
from processors.transcripts import add_transcript, process_pending_transcripts


@click.group()
def transcript():
    """Manage the show transcripts that ground the analysts' voices."""
    pass


@transcript.command()
@click.argument('persona_slug')
@click.argument('video_id')
@click.argument('file', type=click.File('r', encoding='utf-8'))
@click.option('--title', '-t', help='Episode title')
@click.option('--url', help='Episode URL (defaults to the YouTube watch URL)')
@click.option('--published', type=click.DateTime(formats=['%Y-%m-%d']), help='Publication date (YYYY-MM-DD)')
def add(persona_slug, video_id, file, title, url, published):
    """
    Store a raw transcript for a persona.

    Adding the same VIDEO_ID again replaces the transcript and queues it
    for processing.

    Example:
        hitintel transcript add drex-deford dQw4w9WgXcQ episode.txt -t "Cyber in 2025"
    """
    db = Database()
    try:
        transcript_id = add_transcript(
            db,
            persona_slug,
            video_id,
            file.read(),
            video_title=title,
            video_url=url,
            published_date=published,
        )
    except (UnknownPersonaError, ValueError) as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        sys.exit(1)

    click.echo(click.style(f"✓ Transcript saved (ID: {transcript_id})", fg="green"))


@transcript.command()
@click.option('--limit', '-l', default=20, help='Maximum transcripts to process (default: 20)')
def process(limit):
    """
    Extract excerpts and topic tags from the raw transcripts.

    Example:
        hitintel transcript process
    """
    db = Database()
    try:
        generator = TextGenerator(db=db)
    except GenerationError as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        sys.exit(1)

    started = datetime.now()
    summary = process_pending_transcripts(db, generator, limit=limit)

    if not summary.found:
        click.echo(click.style("No raw transcripts to process", fg="yellow"))
        return

    click.echo(f"\n{click.style('Summary:', bold=True)}")
    click.echo(f"  Found: {summary.found}")
    click.echo(f"  Processed: {click.style(str(summary.processed), fg='green')}")
    if summary.warnings:
        click.echo(f"  Failed: {click.style(str(summary.warnings), fg='yellow')}")
    click.echo(f"  Time: {(datetime.now() - started).total_seconds():.1f}s")
