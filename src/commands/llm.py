"""
Text-generation call log commands.
"""

import json
from datetime import timedelta

import click
from sqlalchemy import desc, func
from tabulate import tabulate

from db import Database
from db.models import LLMApiCall, utcnow


@click.group()
def llm():
    """Inspect the logged text-generation calls."""
    pass


@llm.command()
@click.option('--days', default=7, help='Number of days to include in stats (default: 7)')
def stats(days):
    """Show usage, token and failure statistics per task."""
    db = Database()
    session = db.get_session()

    try:
        cutoff = utcnow() - timedelta(days=days)
        recent = session.query(LLMApiCall).filter(LLMApiCall.started_at >= cutoff)

        total_calls = recent.count()
        if not total_calls:
            click.echo(click.style(f"No calls in the last {days} days.", fg='yellow'))
            return

        failed_calls = recent.filter(LLMApiCall.success == 0).count()

        totals = session.query(
            func.sum(LLMApiCall.input_tokens).label('input'),
            func.sum(LLMApiCall.output_tokens).label('output'),
            func.sum(LLMApiCall.total_tokens).label('total'),
            func.avg(LLMApiCall.duration_ms).label('avg_duration')
        ).filter(LLMApiCall.started_at >= cutoff).first()

        by_task = session.query(
            LLMApiCall.task_name,
            func.count(LLMApiCall.id).label('calls'),
            func.sum(LLMApiCall.success).label('successes'),
            func.sum(LLMApiCall.total_tokens).label('tokens'),
            func.avg(LLMApiCall.duration_ms).label('avg_duration')
        ).filter(
            LLMApiCall.started_at >= cutoff
        ).group_by(LLMApiCall.task_name).order_by(desc('calls')).all()

        click.echo(click.style(f"\nText Generation Usage (Last {days} days)", fg='cyan', bold=True))
        click.echo(click.style("=" * 50, fg='cyan'))
        click.echo()

        success_rate = (total_calls - failed_calls) / total_calls * 100
        click.echo(tabulate([
            ['Total Calls', click.style(str(total_calls), fg='green')],
            ['Failed', click.style(str(failed_calls), fg='red') if failed_calls else 0],
            ['Success Rate', f"{success_rate:.1f}%"],
            ['Avg Duration', f"{int(totals.avg_duration or 0)}ms"],
            ['Input Tokens', f"{totals.input or 0:,}"],
            ['Output Tokens', f"{totals.output or 0:,}"],
            ['Total Tokens', click.style(f"{totals.total or 0:,}", fg='green', bold=True)],
        ], tablefmt='plain'))
        click.echo()

        click.echo(click.style("By Task:", fg='yellow', bold=True))
        click.echo(tabulate(
            [[task or '(none)', calls, f"{(successes or 0) / calls * 100:.1f}%", f"{tokens or 0:,}",
              f"{int(avg_duration or 0)}ms"]
             for task, calls, successes, tokens, avg_duration in by_task],
            headers=['Task', 'Calls', 'Success', 'Tokens', 'Avg Duration'],
            tablefmt='simple'
        ))
        click.echo()

    finally:
        session.close()


@llm.command(name='list')
@click.option('--limit', default=20, help='Number of recent calls to show (default: 20)')
@click.option('--task', help='Filter by task name')
@click.option('--success/--errors', default=None, help='Filter by success/error status')
def list_calls(limit, task, success):
    """List recent calls, newest first."""
    db = Database()
    session = db.get_session()

    try:
        query = session.query(LLMApiCall).order_by(desc(LLMApiCall.started_at))
        if task:
            query = query.filter(LLMApiCall.task_name == task)
        if success is not None:
            query = query.filter(LLMApiCall.success == (1 if success else 0))

        calls = query.limit(limit).all()

        if not calls:
            click.echo(click.style("No calls found.", fg='yellow'))
            return

        table_data = []
        for call in calls:
            context = call.context_data or {}
            table_data.append([
                call.id,
                click.style('✓', fg='green') if call.success else click.style('✗', fg='red'),
                call.task_name or '(none)',
                context.get('article_id', ''),
                context.get('persona', ''),
                call.total_tokens or 'N/A',
                f"{call.duration_ms}ms" if call.duration_ms is not None else 'N/A',
                call.started_at.strftime('%Y-%m-%d %H:%M:%S'),
            ])

        click.echo()
        click.echo(tabulate(
            table_data,
            headers=['ID', '✓', 'Task', 'Article', 'Persona', 'Tokens', 'Duration', 'Started'],
            tablefmt='simple'
        ))
        click.echo()

    finally:
        session.close()


@llm.command()
@click.argument('call_id', type=int)
@click.option('--show-prompts/--no-prompts', default=False, help='Show full prompts')
@click.option('--show-response/--no-response', default=False, help='Show the response text')
def show(call_id, show_prompts, show_response):
    """Show one call in detail."""
    db = Database()
    session = db.get_session()

    try:
        call = session.query(LLMApiCall).filter(LLMApiCall.id == call_id).first()

        if not call:
            click.echo(click.style(f"Call #{call_id} not found.", fg='red'))
            return

        status = click.style('SUCCESS', fg='green') if call.success else click.style('ERROR', fg='red')
        click.echo()
        click.echo(click.style(f"Call #{call.id} - ", fg='cyan', bold=True) + status)
        click.echo()
        click.echo(tabulate([
            ['Task', call.task_name or '(none)'],
            ['Model', call.model],
            ['Temperature', call.temperature if call.temperature is not None else 'N/A'],
            ['Started', call.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')],
            ['Duration', f"{call.duration_ms}ms" if call.duration_ms is not None else 'N/A'],
            ['Tokens', f"{call.input_tokens or 0} in / {call.output_tokens or 0} out"],
        ], tablefmt='plain'))
        click.echo()

        if call.context_data:
            click.echo(click.style("Context:", fg='yellow', bold=True))
            click.echo(json.dumps(call.context_data, indent=2))
            click.echo()

        if call.error_message:
            click.echo(click.style("Error:", fg='red', bold=True))
            click.echo(call.error_message)
            click.echo()

        if show_prompts:
            for label, prompt in (('System Prompt:', call.system_prompt), ('User Prompt:', call.user_prompt)):
                if prompt:
                    click.echo(click.style(label, fg='yellow', bold=True))
                    click.echo(prompt)
                    click.echo()

        if show_response and call.response_text:
            click.echo(click.style("Response:", fg='yellow', bold=True))
            click.echo(call.response_text)
            click.echo()

    finally:
        session.close()
