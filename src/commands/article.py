"""
Article commands.
"""

import sys

import click
from tabulate import tabulate

from db import Database
from domain.personas import UnknownPersonaError, analyst_slugs
from llm.openai_client import GenerationError, TextGenerator
from processors.pipeline import ViewpointPipeline


@click.group()
def article():
    """Browse ingested articles and their viewpoints."""
    pass


@article.command(name='list')
@click.option('--limit', '-l', default=20, help='Number of articles to show')
@click.option('--status', '-s', type=click.Choice(['scraped', 'extracted', 'summarized', 'reviewed']),
              help='Filter by processing status')
def list_articles(limit, status):
    """
    List the most recently ingested articles.

    Example:
        hitintel article list --status summarized
    """
    db = Database()
    articles = db.get_recent_articles(limit=limit, status=status)

    if not articles:
        click.echo(click.style("No articles found", fg="yellow"))
        return

    table_data = []
    for art in articles:
        relevance = art.summary.relevance_score if art.summary else None
        if relevance is None:
            score = '-'
        else:
            score = click.style(str(relevance), fg='green' if relevance >= 6 else 'white')
        table_data.append([
            art.id,
            art.processing_status.value,
            score,
            art.title[:70],
            art.created_at.strftime('%Y-%m-%d %H:%M'),
        ])

    click.echo()
    click.echo(tabulate(table_data, headers=['ID', 'Status', 'Rel', 'Title', 'Ingested'], tablefmt='simple'))
    click.echo()


@article.command()
@click.argument('article_id', type=int)
@click.option('--full', '-f', is_flag=True, help='Show full article content')
@click.option('--entities', '-e', is_flag=True, help='Show extracted entities')
@click.option('--viewpoints', '-v', is_flag=True, help='Show analyst viewpoints and briefs')
def show(article_id, full, entities, viewpoints):
    """
    Show article details.

    Example:
        hitintel article show 42 -e -v
    """
    db = Database()
    art = db.get_article(article_id)

    if not art:
        click.echo(click.style(f"✗ Article {article_id} not found", fg="red"))
        return

    click.echo(click.style(f"\n=== Article #{art.id} ===\n", fg="cyan", bold=True))
    click.echo(f"Title: {art.title}")
    click.echo(f"URL: {art.url}")
    click.echo(f"Source: {art.source.name if art.source else 'N/A'}")
    click.echo(f"Author: {art.author or 'N/A'}")
    click.echo(f"Published: {art.published_date or 'N/A'}")
    click.echo(f"Status: {art.processing_status.value}")

    if art.summary:
        click.echo(f"\n{click.style('Summary:', bold=True)} (relevance {art.summary.relevance_score}/10)")
        click.echo(f"  {art.summary.short_summary}")
        for takeaway in art.summary.key_takeaways or []:
            click.echo(f"  - {takeaway}")
        if art.summary.topic_tags:
            click.echo(f"  Tags: {', '.join(art.summary.topic_tags)}")
    else:
        click.echo(click.style("\nNot summarized yet", fg="yellow"))

    if entities:
        click.echo(f"\n{click.style('Entities:', bold=True)}")
        found = db.get_article_entities(article_id)
        if not any(found.values()):
            click.echo(click.style("  No entities found", fg="yellow"))
        for label, rows in (('Organizations', found['organizations']),
                            ('People', found['people']),
                            ('Technologies', found['technologies'])):
            if rows:
                click.echo(f"\n  {click.style(label + ':', fg='cyan')}")
                for name, detail, confidence in rows:
                    click.echo(f"    {name} ({detail or '-'}, {confidence:.2f})")

    if viewpoints:
        click.echo(f"\n{click.style('Viewpoints:', bold=True)}")
        views = db.get_viewpoints_for_article(article_id)
        if not views:
            click.echo(click.style("  No viewpoints generated yet", fg="yellow"))
            click.echo(click.style("  Run: hitintel run viewpoints", fg="yellow"))
        for view in views:
            heading = f"{view.persona.name} [{view.persona.kind.value}] ({view.confidence_score:.2f})"
            click.echo(f"\n  {click.style(heading, fg='green')}")
            click.echo(f"  {view.viewpoint_text}")
            for insight in view.key_insights or []:
                click.echo(f"    • {insight}")

    if art.raw_content:
        click.echo(f"\n{click.style('Content:', bold=True)}")
        if full or len(art.raw_content) <= 500:
            click.echo(art.raw_content)
        else:
            click.echo(art.raw_content[:500] + "...")
            click.echo(click.style("\n[Use --full to see complete article]", fg="yellow"))


@article.command()
@click.argument('article_id', type=int)
@click.argument('analyst', type=click.Choice(analyst_slugs()))
def viewpoint(article_id, analyst):
    """
    Generate one analyst's viewpoint on an article on demand.

    Replaces that analyst's previous viewpoint on the article, if any.

    Example:
        hitintel article viewpoint 42 drex-deford
    """
    db = Database()
    try:
        generator = TextGenerator(db=db)
        result = ViewpointPipeline(db, generator, verbose=False).generate_for_article(article_id, analyst)
    except (UnknownPersonaError, ValueError) as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        sys.exit(1)
    except GenerationError as e:
        click.echo(click.style(f"✗ Viewpoint generation failed: {e}", fg="red"))
        sys.exit(1)

    click.echo(click.style(f"✓ Viewpoint saved ({result.confidence_score:.2f})", fg="green"))
    click.echo(f"\n{result.text}")
    for insight in result.key_insights:
        click.echo(f"  • {insight}")
