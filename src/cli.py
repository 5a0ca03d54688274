#!/usr/bin/env python3
"""
CLI for the healthcare IT intelligence agent.
"""

import click
from importlib.metadata import version
from commands import article, llm, logs, persona, run, source, transcript
from db import Database


@click.group()
@click.version_option(version=version("hitintel"))
def cli():
    """HIT Intelligence - Ingest healthcare IT news and write analyst viewpoints."""
    pass


@cli.command()
def init():
    """
    Create the database tables and add the default sources and personas.

    Safe to run repeatedly: existing sources are left untouched, persona
    profiles are refreshed.
    """
    db = Database()
    result = db.seed_defaults()
    click.echo(click.style(f"✓ Database ready: {db.url}", fg="green"))
    click.echo(f"  Sources added: {result['sources']}")
    click.echo(f"  Personas refreshed: {result['personas']}")


# Register command groups
cli.add_command(run.run)
cli.add_command(source.source)
cli.add_command(article.article)
cli.add_command(persona.persona)
cli.add_command(transcript.transcript)
cli.add_command(llm.llm)
cli.add_command(logs.logs)


if __name__ == "__main__":
    cli()
