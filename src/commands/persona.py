"""
Persona commands.
"""

import click
from tabulate import tabulate

from db import Database
from domain.personas import OUTPUT_PERSONAS


@click.group()
def persona():
    """Analysts, the roundtable and the output personas."""
    pass


@persona.command(name='list')
@click.option('--all', 'show_all', is_flag=True, help='Include disabled personas')
def list_personas(show_all):
    """
    List the personas stored in the database and the output brief templates.

    Output personas get a database row the first time a brief is written for them.
    """
    db = Database()
    personas = db.get_personas(enabled_only=not show_all)

    if personas:
        table_data = []
        for p in personas:
            state = click.style('✓', fg='green') if p.enabled else click.style('✗', fg='red')
            table_data.append([p.id, state, p.slug, p.kind.value, p.name, (p.title or '')[:40]])
        click.echo()
        click.echo(tabulate(table_data, headers=['ID', 'On', 'Slug', 'Kind', 'Name', 'Title'], tablefmt='simple'))
    else:
        click.echo(click.style("No personas found. Run 'hitintel init' to add the analysts.", fg="yellow"))

    click.echo(f"\n{click.style('Output brief templates:', bold=True)}")
    click.echo(tabulate(
        [[t.persona_slug, t.name, t.title] for t in OUTPUT_PERSONAS.values()],
        headers=['Slug', 'Name', 'Audience'],
        tablefmt='simple'
    ))
    click.echo()
