"""
Agent log commands.
"""

import json

import click
from tabulate import tabulate

from db import Database


STATUS_COLORS = {
    'started': 'cyan',
    'success': 'green',
    'warning': 'yellow',
    'error': 'red',
}


@click.command()
@click.option('--limit', '-l', default=50, help='Number of entries to show (default: 50)')
@click.option('--status', '-s', type=click.Choice(list(STATUS_COLORS)), help='Filter by status')
@click.option('--run', '-r', 'run_id', help='Filter by run ID')
@click.option('--details/--no-details', default=False, help='Show entry details')
def logs(limit, status, run_id, details):
    """
    Show the agent log, newest first.

    Example:
        hitintel logs --status warning
        hitintel logs --run 3f2a... --details
    """
    db = Database()
    entries = db.get_recent_logs(limit=limit, status=status, run_id=run_id)

    if not entries:
        click.echo(click.style("No log entries found.", fg="yellow"))
        return

    table_data = []
    for entry in entries:
        row = [
            entry.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            entry.agent_name,
            entry.action,
            click.style(entry.status.value, fg=STATUS_COLORS.get(entry.status.value, 'white')),
            (entry.run_id or '')[:12],
        ]
        if details:
            row.append(json.dumps(entry.details)[:80] if entry.details else '')
        table_data.append(row)

    headers = ['Time', 'Agent', 'Action', 'Status', 'Run']
    if details:
        headers.append('Details')

    click.echo()
    click.echo(tabulate(table_data, headers=headers, tablefmt='simple'))
    click.echo()
