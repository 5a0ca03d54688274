"""
Batch pipelines.

- IngestionPipeline: poll enabled sources, skip known articles, then store,
  extract entities from and summarize every new article.
- ViewpointPipeline: route relevant summarized articles to one analyst,
  generate that analyst's viewpoint, then one brief per output persona.
- RoundtablePipeline: combine the three analysts' viewpoints on an article
  into the roundtable discussion.

Work items are processed sequentially. A failing item (source, article) is
counted and logged; it never aborts its siblings or the run. AI failures
degrade only their own sub-result and are counted as warnings.
"""

import traceback
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from db.database import Database
from domain.personas import OUTPUT_PERSONAS, ROUNDTABLE, UnknownPersonaError, get_analyst
from domain.routing import DEFAULT_ANALYST, route_to_analyst
from extractors import CandidateArticle, fetch_source
from llm.openai_client import GenerationError
from processors.entities import extract_entities, normalize_entities
from processors.summarize import summarize_article
from processors.viewpoints import (
    BRIEF_CONFIDENCE, GeneratedViewpoint, collect_transcript_excerpts,
    generate_analyst_viewpoint, generate_output_brief, generate_roundtable,
)


INGESTION_AGENT = 'HIT Intelligence Agent'
VIEWPOINT_AGENT = 'HIT Viewpoint Agent'


@dataclass
class RunSummary:
    run_id: Optional[str] = None
    status: str = 'completed'
    errors: int = 0
    warnings: int = 0
    error_message: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class IngestionSummary(RunSummary):
    sources_checked: int = 0
    source_errors: int = 0
    candidates_found: int = 0
    duplicates_skipped: int = 0
    articles_processed: int = 0
    entities_extracted: int = 0
    summaries_generated: int = 0


@dataclass
class ViewpointSummary(RunSummary):
    articles_found: int = 0
    analyst_viewpoints: int = 0
    briefs_generated: int = 0

    @property
    def total_viewpoints(self) -> int:
        return self.analyst_viewpoints + self.briefs_generated


@dataclass
class RoundtableSummary(RunSummary):
    articles_found: int = 0
    roundtables_generated: int = 0


class BasePipeline:
    """Run bookkeeping shared by the pipelines: gating, agent logs, console output."""

    pipeline_name = ''
    agent_name = INGESTION_AGENT

    def __init__(self, db: Database, generator, verbose: bool = True):
        """
        Args:
            db: Persistence handle
            generator: Text generator (TextGenerator or a compatible object)
            verbose: Print progress to the console
        """
        self.db = db
        self.generator = generator
        self.verbose = verbose
        self.run_id: Optional[str] = None

    def echo(self, message: str):
        if self.verbose:
            print(message)

    def log(self, action: str, status: str, details: Optional[Dict] = None):
        self.db.log_action(self.agent_name, action, status, details, self.run_id)

    def warn(self, summary: RunSummary, action: str, details: Dict):
        """Record a soft failure."""
        summary.warnings += 1
        self.log(action, 'warning', details)

    def fail_item(self, summary: RunSummary, action: str, error: Exception, details: Dict):
        """Record a failed work item."""
        summary.errors += 1
        self.log(action, 'error', dict(details, error=f"{type(error).__name__}: {error}"))

        from settings import DEBUG
        if DEBUG:
            traceback.print_exception(type(error), error, error.__traceback__)

    def begin(self, summary: RunSummary, force: bool = False) -> bool:
        """
        Check the datastore and register the run.

        Returns:
            False if the datastore is unreachable (summary marked as error)

        Raises:
            RunInProgressError: If another run of this pipeline is in progress
        """
        try:
            self.db.check_connection()
        except SQLAlchemyError as e:
            summary.status = 'error'
            summary.error_message = f"Database unreachable: {e}"
            self.echo(f"✗ {summary.error_message}")
            return False

        self.run_id = self.db.start_run(self.pipeline_name, force=force)
        summary.run_id = self.run_id
        self.log(f"{self.pipeline_name}_run_started", 'started')
        return True

    def end(self, summary: RunSummary):
        """Record the outcome of the run."""
        stats = summary.to_dict()
        try:
            self.db.finish_run(self.run_id, summary.status, stats, summary.error_message)
        except SQLAlchemyError as e:
            self.echo(f"✗ Could not record run completion: {e}")
        status = 'success' if summary.status == 'completed' else 'error'
        self.log(f"{self.pipeline_name}_run_completed", status, stats)


class IngestionPipeline(BasePipeline):
    """Source polling, deduplication, entity extraction and summarization."""

    pipeline_name = 'ingestion'
    agent_name = INGESTION_AGENT

    def __init__(self, db: Database, generator, fetch: Callable = fetch_source,
                 max_items_per_source: Optional[int] = None, verbose: bool = True):
        """
        Args:
            db: Persistence handle
            generator: Text generator
            fetch: Callable (source, max_items) -> list of CandidateArticle
            max_items_per_source: Candidates taken per source (defaults to MAX_ITEMS_PER_SOURCE)
            verbose: Print progress to the console
        """
        super().__init__(db, generator, verbose)
        if max_items_per_source is None:
            from settings import MAX_ITEMS_PER_SOURCE
            max_items_per_source = MAX_ITEMS_PER_SOURCE
        self.fetch = fetch
        self.max_items_per_source = max_items_per_source

    def run(self, force: bool = False) -> IngestionSummary:
        """
        Execute one ingestion run.

        Args:
            force: Start even if another ingestion run is in progress

        Returns:
            IngestionSummary with the run totals

        Raises:
            RunInProgressError: If another ingestion run is in progress
        """
        summary = IngestionSummary()
        if not self.begin(summary, force):
            return summary

        try:
            sources = self.db.get_enabled_sources()
            self.echo(f"Polling {len(sources)} sources...")

            seen_urls = set()
            seen_hashes = set()

            for source in sources:
                candidates = self._fetch(source, summary)

                for candidate in candidates:
                    # The same item can show up twice in one batch
                    if candidate.url in seen_urls or candidate.content_hash in seen_hashes:
                        summary.duplicates_skipped += 1
                        continue
                    seen_urls.add(candidate.url)
                    seen_hashes.add(candidate.content_hash)

                    try:
                        if self.db.article_exists(candidate.content_hash, candidate.url):
                            summary.duplicates_skipped += 1
                            continue
                        self.process_article(candidate, source.id, summary)
                    except Exception as e:
                        self.fail_item(summary, 'article_processing_failed', e, {'url': candidate.url})
                        self.echo(f"  ✗ Failed to process {candidate.url}: {e}")

        except SQLAlchemyError as e:
            summary.status = 'error'
            summary.error_message = str(e)
            self.echo(f"✗ Ingestion run aborted: {e}")

        self.end(summary)
        return summary

    def _fetch(self, source, summary: IngestionSummary):
        """Candidates of one source; a failing source yields none."""
        try:
            candidates = self.fetch(source, self.max_items_per_source)
        except Exception as e:
            summary.source_errors += 1
            self._record_source(source, summary, failed=True)
            self.log('source_fetch_failed', 'error', {
                'source': source.name,
                'error': f"{type(e).__name__}: {e}",
            })
            self.echo(f"  ✗ {source.name}: {e}")
            return []

        summary.sources_checked += 1
        summary.candidates_found += len(candidates)
        self._record_source(source, summary)
        self.echo(f"  ✓ {source.name}: {len(candidates)} items")
        return candidates

    def _record_source(self, source, summary: IngestionSummary, failed: bool = False):
        """Update the source's check bookkeeping without stopping the run."""
        try:
            if failed:
                self.db.record_source_error(source.id)
            else:
                self.db.record_source_checked(source.id)
        except SQLAlchemyError as e:
            self.fail_item(summary, 'source_bookkeeping_failed', e, {'source': source.name})
            self.echo(f"  ✗ Could not update {source.name}: {e}")

    def process_article(self, candidate: CandidateArticle, source_id: Optional[int], summary: IngestionSummary) -> int:
        """
        Store a new article, then enrich it with entities and a summary.

        Extraction and summarization fail independently and softly. Database
        errors propagate to the caller and abort the remaining steps.

        Returns:
            Article ID
        """
        article_id = self.db.save_article(
            url=candidate.url,
            title=candidate.title,
            content_hash=candidate.content_hash,
            raw_content=candidate.content,
            source_id=source_id,
            author=candidate.author,
            published_date=candidate.published_date,
        )
        summary.articles_processed += 1
        self.echo(f"  Processing: {candidate.title[:50]}...")

        try:
            entities = normalize_entities(
                extract_entities(self.generator, candidate.title, candidate.content, article_id)
            )
            counts = self.db.save_entities(article_id, entities)
            summary.entities_extracted += sum(counts.values())
        except GenerationError as e:
            self.warn(summary, 'entity_extraction_failed', {'article_id': article_id, 'error': str(e)})

        try:
            result = summarize_article(self.generator, candidate.title, candidate.content, article_id)
            self.db.save_summary(
                article_id,
                result.short_summary,
                result.key_takeaways,
                result.topic_tags,
                result.relevance_score,
            )
            summary.summaries_generated += 1
        except GenerationError as e:
            self.warn(summary, 'summary_generation_failed', {'article_id': article_id, 'error': str(e)})

        return article_id


class ViewpointPipeline(BasePipeline):
    """Analyst viewpoints and output-persona briefs for relevant articles."""

    pipeline_name = 'viewpoint'
    agent_name = VIEWPOINT_AGENT

    def __init__(self, db: Database, generator, threshold: Optional[int] = None,
                 limit: Optional[int] = None, verbose: bool = True):
        """
        Args:
            db: Persistence handle
            generator: Text generator
            threshold: Minimum relevance score (defaults to RELEVANCE_THRESHOLD)
            limit: Articles per run (defaults to VIEWPOINT_BATCH_LIMIT)
            verbose: Print progress to the console
        """
        super().__init__(db, generator, verbose)
        from settings import RELEVANCE_THRESHOLD, VIEWPOINT_BATCH_LIMIT
        self.threshold = RELEVANCE_THRESHOLD if threshold is None else threshold
        self.limit = VIEWPOINT_BATCH_LIMIT if limit is None else limit

    def run(self, force: bool = False) -> ViewpointSummary:
        """
        Execute one viewpoint run.

        Raises:
            RunInProgressError: If another viewpoint run is in progress
        """
        summary = ViewpointSummary()
        if not self.begin(summary, force):
            return summary

        try:
            analysts = {p.slug: p for p in self.db.get_personas(kind='analyst')}
            if not analysts:
                raise UnknownPersonaError(DEFAULT_ANALYST)

            articles = self.db.get_articles_needing_viewpoints(self.threshold, self.limit)
            summary.articles_found = len(articles)
            self.echo(f"{len(articles)} articles need an analyst viewpoint")

            for article in articles:
                try:
                    self._process_article(article, analysts, summary)
                except UnknownPersonaError:
                    raise
                except Exception as e:
                    self.fail_item(summary, 'viewpoint_processing_failed', e, {'article_id': article['id']})
                    self.echo(f"  ✗ Article {article['id']}: {e}")

        except UnknownPersonaError as e:
            summary.status = 'error'
            summary.error_message = f"{e}. Run 'hitintel init' to seed the analyst personas, or enable the routed analyst."
            self.echo(f"✗ {summary.error_message}")
        except SQLAlchemyError as e:
            summary.status = 'error'
            summary.error_message = str(e)
            self.echo(f"✗ Viewpoint run aborted: {e}")

        self.end(summary)
        return summary

    def _process_article(self, article: Dict, analysts: Dict, summary: ViewpointSummary):
        slug = route_to_analyst(article['topic_tags'])
        persona = analysts.get(slug)
        if persona is None:
            raise UnknownPersonaError(slug)

        try:
            viewpoint = self.create_analyst_viewpoint(article, persona)
        except GenerationError as e:
            self.warn(summary, 'viewpoint_generation_failed', {
                'article_id': article['id'], 'persona': slug, 'error': str(e)
            })
            return

        summary.analyst_viewpoints += 1
        self.echo(f"  ✓ {persona.name} on: {article['title'][:50]}...")
        self.generate_briefs(article, persona, viewpoint, summary)

    def create_analyst_viewpoint(self, article: Dict, persona) -> GeneratedViewpoint:
        """
        Generate and store one analyst's viewpoint on an article.

        Raises:
            GenerationError: If the viewpoint cannot be generated
        """
        transcripts = self.db.get_transcripts_for_persona(persona.id, article['topic_tags'])
        excerpts = collect_transcript_excerpts(transcripts)

        viewpoint = generate_analyst_viewpoint(self.generator, persona.slug, article, excerpts)
        self.db.save_viewpoint(
            article_id=article['id'],
            persona_id=persona.id,
            viewpoint_text=viewpoint.text,
            key_insights=viewpoint.key_insights,
            confidence_score=viewpoint.confidence_score,
            model_used=self.generator.model,
            generation_metadata={
                'routedTo': persona.slug,
                'topicTags': article['topic_tags'],
                'transcriptExcerpts': len(excerpts),
            },
        )
        return viewpoint

    def generate_briefs(self, article: Dict, analyst, viewpoint: GeneratedViewpoint, summary: ViewpointSummary):
        """One brief per output persona, each stored as that persona's viewpoint."""
        for template in OUTPUT_PERSONAS.values():
            try:
                brief = generate_output_brief(self.generator, template, analyst.name, viewpoint.text, article)
            except GenerationError as e:
                self.warn(summary, 'brief_generation_failed', {
                    'article_id': article['id'], 'persona': template.persona_slug, 'error': str(e)
                })
                continue

            persona_id = self.db.ensure_persona(
                slug=template.persona_slug,
                name=template.name,
                kind=template.kind,
                title=template.title,
                background=template.description,
                framework='Output persona',
            )
            self.db.save_viewpoint(
                article_id=article['id'],
                persona_id=persona_id,
                viewpoint_text=brief.brief,
                key_insights=brief.key_insights,
                confidence_score=BRIEF_CONFIDENCE,
                model_used=self.generator.model,
                generation_metadata={
                    'type': 'output-brief',
                    'outputPersona': template.slug,
                    'headline': brief.headline,
                    'relevanceRating': brief.relevance_rating,
                    'analystSource': analyst.slug,
                },
            )
            summary.briefs_generated += 1

    def generate_for_article(self, article_id: int, analyst_slug: str) -> GeneratedViewpoint:
        """
        Generate a specific analyst's viewpoint on one article on demand.

        Raises:
            UnknownPersonaError: If the slug is not a known analyst
            ValueError: If the article does not exist
            GenerationError: If the viewpoint cannot be generated
        """
        get_analyst(analyst_slug)
        persona = self.db.get_persona_by_slug(analyst_slug)
        if persona is None:
            raise UnknownPersonaError(analyst_slug)

        article = self.db.get_article_payload(article_id)
        if article is None:
            raise ValueError(f"Article {article_id} not found")

        viewpoint = self.create_analyst_viewpoint(article, persona)
        self.db.log_action(self.agent_name, 'viewpoint_generated', 'success',
                           {'article_id': article_id, 'persona': analyst_slug})
        return viewpoint


class RoundtablePipeline(BasePipeline):
    """Roundtable discussions for articles every analyst has covered."""

    pipeline_name = 'roundtable'
    agent_name = VIEWPOINT_AGENT

    def __init__(self, db: Database, generator, limit: Optional[int] = None, verbose: bool = True):
        super().__init__(db, generator, verbose)
        from settings import ROUNDTABLE_BATCH_LIMIT
        self.limit = ROUNDTABLE_BATCH_LIMIT if limit is None else limit

    def run(self, force: bool = False) -> RoundtableSummary:
        """
        Execute one roundtable run.

        Raises:
            RunInProgressError: If another roundtable run is in progress
        """
        summary = RoundtableSummary()
        if not self.begin(summary, force):
            return summary

        try:
            persona_id = self.db.ensure_persona(
                slug=ROUNDTABLE.slug,
                name=ROUNDTABLE.name,
                kind=ROUNDTABLE.kind,
                title=ROUNDTABLE.title,
                background=ROUNDTABLE.background,
                framework=ROUNDTABLE.framework,
            )
            names = {p.slug: p.name for p in self.db.get_personas(kind='analyst')}

            articles = self.db.get_articles_needing_roundtable(self.limit)
            summary.articles_found = len(articles)
            self.echo(f"{len(articles)} articles ready for the roundtable")

            for article in articles:
                try:
                    self._process_article(article, persona_id, names, summary)
                except Exception as e:
                    self.fail_item(summary, 'roundtable_processing_failed', e, {'article_id': article['id']})
                    self.echo(f"  ✗ Article {article['id']}: {e}")

        except SQLAlchemyError as e:
            summary.status = 'error'
            summary.error_message = str(e)
            self.echo(f"✗ Roundtable run aborted: {e}")

        self.end(summary)
        return summary

    def _process_article(self, article: Dict, persona_id: int, names: Dict[str, str], summary: RoundtableSummary):
        slugs = sorted(article['viewpoints'])
        views = [(names.get(slug, slug), article['viewpoints'][slug]) for slug in slugs]

        try:
            roundtable = generate_roundtable(self.generator, article, views)
        except GenerationError as e:
            self.warn(summary, 'roundtable_generation_failed', {'article_id': article['id'], 'error': str(e)})
            return

        self.db.save_viewpoint(
            article_id=article['id'],
            persona_id=persona_id,
            viewpoint_text=roundtable.text,
            key_insights=roundtable.key_insights,
            confidence_score=roundtable.confidence_score,
            model_used=self.generator.model,
            generation_metadata={'type': 'roundtable', 'analysts': slugs},
        )
        summary.roundtables_generated += 1
        self.echo(f"  ✓ Roundtable on: {article['title'][:50]}...")
