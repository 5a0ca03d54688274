"""
Database connection and operations.

Every operation opens its own short-lived session and commits before
returning. No transaction spans more than one logical save, so a crash in
the middle of a multi-entity save leaves the already written rows in place;
the idempotent upserts below make re-running the same work safe.
"""

import sys
import uuid
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, case, func, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, joinedload
from sqlalchemy.pool import StaticPool

from .models import (
    Base, Source, SourceKind, SourcePriority, Article, ProcessingStatus, STATUS_RANK,
    Organization, OrganizationType, Person, Technology, TechnologyCategory,
    ArticleOrganization, ArticlePerson, ArticleTechnology, Summary,
    Persona, PersonaKind, Transcript, TranscriptStatus, Viewpoint,
    AgentLog, LogStatus, PipelineRun, PipelineName, utcnow,
)


class RunInProgressError(Exception):
    """Another run of the same pipeline started recently and has not finished."""

    def __init__(self, pipeline: str, run_id: str, started_at):
        self.pipeline = pipeline
        self.run_id = run_id
        self.started_at = started_at
        super().__init__(
            f"A {pipeline} run ({run_id}) has been in progress since {started_at:%Y-%m-%d %H:%M:%S}"
        )


PRIORITY_ORDER = case(
    (Source.priority == SourcePriority.HIGH, 0),
    (Source.priority == SourcePriority.MEDIUM, 1),
    else_=2,
)


def _coerce_enum(enum_class, value, default):
    """Map a raw string onto an enum member, falling back to default."""
    if isinstance(value, enum_class):
        return value
    for member in enum_class:
        if member.value == value:
            return member
    return default


class Database:
    """Persistence handle for the intelligence store."""

    def __init__(self, url: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            url: SQLAlchemy database URL. Defaults to DATABASE_URL from settings.
                 'sqlite://' gives a private in-memory database.
        """
        if url is None:
            from settings import DATABASE_URL
            url = DATABASE_URL

        engine_kwargs: Dict[str, Any] = {'echo': False}

        if url.startswith('sqlite'):
            engine_kwargs['connect_args'] = {'check_same_thread': False}
            if url in ('sqlite://', 'sqlite:///:memory:'):
                # One shared connection, otherwise each session sees an empty database
                engine_kwargs['poolclass'] = StaticPool
            else:
                # Ensure data directory exists
                db_file = Path(url.split(':///', 1)[1])
                db_file.parent.mkdir(parents=True, exist_ok=True)

        self.url = url
        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        # Create tables if they don't exist
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    @contextmanager
    def session_scope(self):
        """Session that commits on success and rolls back on any error."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _insert(self, model):
        """Dialect-specific INSERT supporting ON CONFLICT clauses."""
        if self.engine.dialect.name == 'postgresql':
            return postgresql.insert(model.__table__)
        return sqlite.insert(model.__table__)

    def check_connection(self):
        """
        Verify the datastore is reachable.

        Raises:
            SQLAlchemyError: If a trivial query cannot be executed
        """
        with self.engine.connect() as conn:
            conn.execute(text('SELECT 1'))

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def get_enabled_sources(self) -> List[Source]:
        """Enabled sources, high priority first."""
        with self.session_scope() as session:
            return (session.query(Source)
                    .filter(Source.enabled.is_(True))
                    .order_by(PRIORITY_ORDER, Source.id)
                    .all())

    def get_sources(self) -> List[Source]:
        """All sources, enabled or not, in polling order."""
        with self.session_scope() as session:
            return session.query(Source).order_by(PRIORITY_ORDER, Source.id).all()

    def get_source_by_name(self, name: str) -> Optional[Source]:
        with self.session_scope() as session:
            return session.query(Source).filter_by(name=name).first()

    def add_source(
        self,
        name: str,
        url: str,
        kind: str,
        feed_url: Optional[str] = None,
        scrape_selector: Optional[str] = None,
        priority: str = 'medium',
        enabled: bool = True
    ) -> bool:
        """
        Register a news source.

        Args:
            name: Unique display name
            url: Homepage or listing page URL
            kind: 'rss', 'sitemap' or 'scrape'
            feed_url: Feed URL for RSS sources
            scrape_selector: CSS selector for scraped listing pages
            priority: 'high', 'medium' or 'low'
            enabled: Whether the ingestion run polls this source

        Returns:
            True if the source was created, False if a source with that name exists
        """
        stmt = self._insert(Source).values(
            name=name,
            url=url,
            kind=_coerce_enum(SourceKind, kind, SourceKind.SCRAPE),
            feed_url=feed_url,
            scrape_selector=scrape_selector,
            priority=_coerce_enum(SourcePriority, priority, SourcePriority.MEDIUM),
            enabled=enabled,
            error_count=0,
            created_at=utcnow(),
            updated_at=utcnow(),
        ).on_conflict_do_nothing(index_elements=['name'])

        with self.session_scope() as session:
            result = session.execute(stmt)
            return result.rowcount > 0

    def set_source_enabled(self, name: str, enabled: bool) -> bool:
        """Enable or disable a source by name. Returns False if it does not exist."""
        with self.session_scope() as session:
            source = session.query(Source).filter_by(name=name).first()
            if not source:
                return False
            source.enabled = enabled
            return True

    def record_source_checked(self, source_id: int):
        with self.session_scope() as session:
            session.query(Source).filter_by(id=source_id).update(
                {Source.last_checked_at: utcnow()}, synchronize_session=False
            )

    def record_source_error(self, source_id: int):
        """Count a failed fetch against the source. The counter never resets on its own."""
        with self.session_scope() as session:
            session.query(Source).filter_by(id=source_id).update(
                {
                    Source.error_count: Source.error_count + 1,
                    Source.last_checked_at: utcnow(),
                },
                synchronize_session=False
            )

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def article_exists(self, content_hash: str, url: str) -> bool:
        """
        Check if article already exists.

        An article is a duplicate when either its content hash or its URL is
        already stored.
        """
        with self.session_scope() as session:
            found = (session.query(Article.id)
                     .filter(or_(Article.content_hash == content_hash, Article.url == url))
                     .first())
            return found is not None

    def save_article(
        self,
        url: str,
        title: str,
        content_hash: str,
        raw_content: Optional[str] = None,
        source_id: Optional[int] = None,
        author: Optional[str] = None,
        published_date=None
    ) -> int:
        """
        Insert an article, or refresh it when the URL is already stored.

        Re-ingesting a URL updates title, content and hash but keeps the row
        identity and never moves processing_status backwards.

        Returns:
            Article ID
        """
        now = utcnow()
        stmt = self._insert(Article).values(
            source_id=source_id,
            url=url,
            title=title,
            author=author,
            published_date=published_date,
            raw_content=raw_content,
            content_hash=content_hash,
            processing_status=ProcessingStatus.SCRAPED,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['url'],
            set_={
                'title': stmt.excluded.title,
                'raw_content': stmt.excluded.raw_content,
                'content_hash': stmt.excluded.content_hash,
                'updated_at': now,
            }
        )

        with self.session_scope() as session:
            session.execute(stmt)
            return session.execute(select(Article.id).where(Article.url == url)).scalar_one()

    def get_article(self, article_id: int) -> Optional[Article]:
        """Article with its summary and source loaded."""
        with self.session_scope() as session:
            return (session.query(Article)
                    .options(joinedload(Article.summary), joinedload(Article.source))
                    .filter_by(id=article_id)
                    .first())

    def advance_status(self, article_id: int, status: ProcessingStatus) -> bool:
        """
        Move an article forward to the given processing status.

        Transitions are monotonic: a status at or behind the current one is
        ignored.

        Returns:
            True if the status changed
        """
        with self.session_scope() as session:
            article = session.query(Article).filter_by(id=article_id).first()
            if not article:
                return False
            if STATUS_RANK[status] <= STATUS_RANK[article.processing_status]:
                return False
            article.processing_status = status
            return True

    def get_recent_articles(self, limit: int = 20, status: Optional[str] = None) -> List[Article]:
        """Most recently ingested articles, newest first, with summaries loaded."""
        with self.session_scope() as session:
            query = session.query(Article).options(joinedload(Article.summary))
            if status:
                query = query.filter(
                    Article.processing_status == _coerce_enum(ProcessingStatus, status, None)
                )
            return query.order_by(Article.created_at.desc(), Article.id.desc()).limit(limit).all()

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def _organization_id(self, canonical_name: str) -> Optional[int]:
        with self.session_scope() as session:
            return session.execute(
                select(Organization.id).where(Organization.canonical_name == canonical_name)
            ).scalar_one_or_none()

    def upsert_organization(self, canonical_name: str, org_type: str = 'other') -> int:
        """Insert-or-fetch an organization by canonical name. The first stored type wins."""
        now = utcnow()
        stmt = self._insert(Organization).values(
            canonical_name=canonical_name,
            type=_coerce_enum(OrganizationType, org_type, OrganizationType.OTHER),
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=['canonical_name'])

        with self.session_scope() as session:
            session.execute(stmt)
            return session.execute(
                select(Organization.id).where(Organization.canonical_name == canonical_name)
            ).scalar_one()

    def upsert_technology(self, canonical_name: str, category: str = 'other', vendor_id: Optional[int] = None) -> int:
        """Insert-or-fetch a technology by canonical name."""
        now = utcnow()
        stmt = self._insert(Technology).values(
            canonical_name=canonical_name,
            category=_coerce_enum(TechnologyCategory, category, TechnologyCategory.OTHER),
            vendor_id=vendor_id,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=['canonical_name'])

        with self.session_scope() as session:
            session.execute(stmt)
            return session.execute(
                select(Technology.id).where(Technology.canonical_name == canonical_name)
            ).scalar_one()

    def find_or_create_person(self, name: str, title: Optional[str] = None, organization_id: Optional[int] = None) -> int:
        """
        Best-effort person identity: an exact name match reuses the existing row.

        Two different people sharing a name collapse into one row.
        """
        with self.session_scope() as session:
            person = session.query(Person).filter_by(name=name).order_by(Person.id).first()
            if person:
                return person.id
            person = Person(name=name, title=title, organization_id=organization_id)
            session.add(person)
            session.flush()
            return person.id

    def _link(self, junction, article_id: int, column: str, entity_id: int, confidence: float) -> bool:
        stmt = self._insert(junction).values(
            article_id=article_id,
            confidence=confidence,
            created_at=utcnow(),
            **{column: entity_id}
        ).on_conflict_do_nothing(index_elements=['article_id', column])

        with self.session_scope() as session:
            return session.execute(stmt).rowcount > 0

    def link_organization(self, article_id: int, organization_id: int, confidence: float) -> bool:
        """Link an organization to an article. Existing links are left untouched."""
        return self._link(ArticleOrganization, article_id, 'organization_id', organization_id, confidence)

    def link_person(self, article_id: int, person_id: int, confidence: float) -> bool:
        return self._link(ArticlePerson, article_id, 'person_id', person_id, confidence)

    def link_technology(self, article_id: int, technology_id: int, confidence: float) -> bool:
        return self._link(ArticleTechnology, article_id, 'technology_id', technology_id, confidence)

    def save_entities(self, article_id: int, entities) -> Dict[str, int]:
        """
        Persist normalized entities and link them to an article.

        Organizations are saved first so that people and technologies can
        resolve their organization/vendor by canonical name. Each statement
        commits on its own. Re-saving the same entities creates no new rows.

        Args:
            article_id: Article ID
            entities: ExtractedEntities with canonical names

        Returns:
            Dictionary with counts of entities linked per type
        """
        counts = {'organizations': 0, 'people': 0, 'technologies': 0}

        for org in entities.organizations:
            org_id = self.upsert_organization(org.name, org.type)
            self.link_organization(article_id, org_id, org.confidence)
            counts['organizations'] += 1

        for person in entities.people:
            org_id = self._organization_id(person.organization) if person.organization else None
            person_id = self.find_or_create_person(person.name, person.title, org_id)
            self.link_person(article_id, person_id, person.confidence)
            counts['people'] += 1

        for tech in entities.technologies:
            vendor_id = self._organization_id(tech.vendor) if tech.vendor else None
            tech_id = self.upsert_technology(tech.name, tech.category, vendor_id)
            self.link_technology(article_id, tech_id, tech.confidence)
            counts['technologies'] += 1

        self.advance_status(article_id, ProcessingStatus.EXTRACTED)
        return counts

    def get_article_entities(self, article_id: int) -> Dict[str, list]:
        """Linked entities of an article as (name, detail, confidence) tuples."""
        with self.session_scope() as session:
            orgs = (session.query(Organization.canonical_name, Organization.type, ArticleOrganization.confidence)
                    .join(ArticleOrganization, ArticleOrganization.organization_id == Organization.id)
                    .filter(ArticleOrganization.article_id == article_id)
                    .order_by(Organization.canonical_name)
                    .all())
            people = (session.query(Person.name, Person.title, ArticlePerson.confidence)
                      .join(ArticlePerson, ArticlePerson.person_id == Person.id)
                      .filter(ArticlePerson.article_id == article_id)
                      .order_by(Person.name)
                      .all())
            techs = (session.query(Technology.canonical_name, Technology.category, ArticleTechnology.confidence)
                     .join(ArticleTechnology, ArticleTechnology.technology_id == Technology.id)
                     .filter(ArticleTechnology.article_id == article_id)
                     .order_by(Technology.canonical_name)
                     .all())
            return {
                'organizations': [(name, org_type.value, conf) for name, org_type, conf in orgs],
                'people': [(name, title, conf) for name, title, conf in people],
                'technologies': [(name, category.value, conf) for name, category, conf in techs],
            }

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def save_summary(
        self,
        article_id: int,
        short_summary: str,
        key_takeaways: List[str],
        topic_tags: List[str],
        relevance_score: int
    ):
        """Insert or replace the article's summary and mark it summarized."""
        now = utcnow()
        relevance_score = max(1, min(10, int(relevance_score)))
        stmt = self._insert(Summary).values(
            article_id=article_id,
            short_summary=short_summary,
            key_takeaways=list(key_takeaways),
            topic_tags=list(topic_tags),
            relevance_score=relevance_score,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['article_id'],
            set_={
                'short_summary': stmt.excluded.short_summary,
                'key_takeaways': stmt.excluded.key_takeaways,
                'topic_tags': stmt.excluded.topic_tags,
                'relevance_score': stmt.excluded.relevance_score,
                'updated_at': now,
            }
        )

        with self.session_scope() as session:
            session.execute(stmt)

        self.advance_status(article_id, ProcessingStatus.SUMMARIZED)

    # ------------------------------------------------------------------
    # Personas
    # ------------------------------------------------------------------

    def upsert_persona(
        self,
        slug: str,
        name: str,
        kind: str = 'analyst',
        title: Optional[str] = None,
        background: Optional[str] = None,
        framework: Optional[str] = None,
        show_names: Optional[List[str]] = None
    ) -> int:
        """
        Create a persona or refresh its profile fields. The enabled flag is kept.

        Returns:
            Persona ID
        """
        now = utcnow()
        stmt = self._insert(Persona).values(
            slug=slug,
            kind=_coerce_enum(PersonaKind, kind, PersonaKind.ANALYST),
            name=name,
            title=title,
            background=background,
            framework=framework,
            show_names=show_names,
            enabled=True,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['slug'],
            set_={
                'kind': stmt.excluded.kind,
                'name': stmt.excluded.name,
                'title': stmt.excluded.title,
                'background': stmt.excluded.background,
                'framework': stmt.excluded.framework,
                'show_names': stmt.excluded.show_names,
                'updated_at': now,
            }
        )

        with self.session_scope() as session:
            session.execute(stmt)
            return session.execute(select(Persona.id).where(Persona.slug == slug)).scalar_one()

    def ensure_persona(self, slug: str, name: str, kind: str, title: Optional[str] = None,
                       background: Optional[str] = None, framework: Optional[str] = None) -> int:
        """Fetch a persona ID by slug, creating the row on first use."""
        now = utcnow()
        stmt = self._insert(Persona).values(
            slug=slug,
            kind=_coerce_enum(PersonaKind, kind, PersonaKind.ANALYST),
            name=name,
            title=title,
            background=background,
            framework=framework,
            enabled=True,
            created_at=now,
            updated_at=now,
        ).on_conflict_do_nothing(index_elements=['slug'])

        with self.session_scope() as session:
            session.execute(stmt)
            return session.execute(select(Persona.id).where(Persona.slug == slug)).scalar_one()

    def get_persona_by_slug(self, slug: str) -> Optional[Persona]:
        with self.session_scope() as session:
            return session.query(Persona).filter_by(slug=slug).first()

    def get_personas(self, kind: Optional[str] = None, enabled_only: bool = True) -> List[Persona]:
        """Personas ordered by slug, optionally restricted to one kind."""
        with self.session_scope() as session:
            query = session.query(Persona)
            if kind:
                query = query.filter(Persona.kind == _coerce_enum(PersonaKind, kind, None))
            if enabled_only:
                query = query.filter(Persona.enabled.is_(True))
            return query.order_by(Persona.slug).all()

    # ------------------------------------------------------------------
    # Transcripts
    # ------------------------------------------------------------------

    def save_transcript(
        self,
        persona_id: int,
        video_id: str,
        raw_transcript: str,
        video_title: Optional[str] = None,
        video_url: Optional[str] = None,
        published_date=None
    ) -> int:
        """
        Store a raw transcript. Re-saving a video replaces its text and
        returns it to the raw state so it gets processed again.

        Returns:
            Transcript ID
        """
        now = utcnow()
        stmt = self._insert(Transcript).values(
            persona_id=persona_id,
            video_id=video_id,
            video_title=video_title,
            video_url=video_url,
            published_date=published_date,
            raw_transcript=raw_transcript,
            processed_excerpts=[],
            topic_tags=[],
            processing_status=TranscriptStatus.RAW,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['video_id'],
            set_={
                'raw_transcript': stmt.excluded.raw_transcript,
                'processing_status': TranscriptStatus.RAW,
                'updated_at': now,
            }
        )

        with self.session_scope() as session:
            session.execute(stmt)
            return session.execute(select(Transcript.id).where(Transcript.video_id == video_id)).scalar_one()

    def get_raw_transcripts(self, limit: int = 20) -> List[Transcript]:
        with self.session_scope() as session:
            return (session.query(Transcript)
                    .filter(Transcript.processing_status == TranscriptStatus.RAW)
                    .order_by(Transcript.id)
                    .limit(limit)
                    .all())

    def mark_transcript_processed(self, transcript_id: int, excerpts: List[Dict[str, str]], topic_tags: List[str]):
        with self.session_scope() as session:
            transcript = session.query(Transcript).filter_by(id=transcript_id).one()
            transcript.processed_excerpts = list(excerpts)
            transcript.topic_tags = list(topic_tags)
            transcript.processing_status = TranscriptStatus.PROCESSED

    def mark_transcript_error(self, transcript_id: int):
        with self.session_scope() as session:
            session.query(Transcript).filter_by(id=transcript_id).update(
                {Transcript.processing_status: TranscriptStatus.ERROR}, synchronize_session=False
            )

    def get_transcripts_for_persona(self, persona_id: int, topic_tags: Optional[List[str]] = None, limit: int = 10) -> List[Transcript]:
        """
        Processed transcripts of a persona, newest first.

        When topic tags are given, only transcripts sharing at least one tag
        (case-insensitive) are returned.
        """
        with self.session_scope() as session:
            transcripts = (session.query(Transcript)
                           .filter(Transcript.persona_id == persona_id,
                                   Transcript.processing_status == TranscriptStatus.PROCESSED)
                           .order_by(Transcript.published_date.is_(None),
                                     Transcript.published_date.desc(),
                                     Transcript.id.desc())
                           .all())

        if topic_tags:
            wanted = {tag.lower().strip() for tag in topic_tags}
            transcripts = [
                t for t in transcripts
                if wanted & {tag.lower().strip() for tag in (t.topic_tags or [])}
            ]

        return transcripts[:limit]

    # ------------------------------------------------------------------
    # Viewpoints
    # ------------------------------------------------------------------

    def save_viewpoint(
        self,
        article_id: int,
        persona_id: int,
        viewpoint_text: str,
        key_insights: Optional[List[str]] = None,
        confidence_score: float = 0.8,
        model_used: Optional[str] = None,
        generation_metadata: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Insert the viewpoint for an (article, persona) pair, replacing any
        previous one for the same pair.

        Returns:
            Viewpoint ID
        """
        now = utcnow()
        stmt = self._insert(Viewpoint).values(
            article_id=article_id,
            persona_id=persona_id,
            viewpoint_text=viewpoint_text,
            key_insights=list(key_insights or []),
            confidence_score=max(0.0, min(1.0, float(confidence_score))),
            model_used=model_used,
            generation_metadata=generation_metadata,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['article_id', 'persona_id'],
            set_={
                'viewpoint_text': stmt.excluded.viewpoint_text,
                'key_insights': stmt.excluded.key_insights,
                'confidence_score': stmt.excluded.confidence_score,
                'model_used': stmt.excluded.model_used,
                'generation_metadata': stmt.excluded.generation_metadata,
                'updated_at': now,
            }
        )

        with self.session_scope() as session:
            session.execute(stmt)
            return session.execute(
                select(Viewpoint.id).where(Viewpoint.article_id == article_id,
                                           Viewpoint.persona_id == persona_id)
            ).scalar_one()

    def get_viewpoints_for_article(self, article_id: int) -> List[Viewpoint]:
        """Viewpoints of an article with their personas, analysts first."""
        kind_order = case(
            (Persona.kind == PersonaKind.ANALYST, 0),
            (Persona.kind == PersonaKind.ROUNDTABLE, 1),
            else_=2,
        )
        with self.session_scope() as session:
            return (session.query(Viewpoint)
                    .join(Persona, Viewpoint.persona_id == Persona.id)
                    .options(joinedload(Viewpoint.persona))
                    .filter(Viewpoint.article_id == article_id)
                    .order_by(kind_order, Persona.slug)
                    .all())

    def get_articles_needing_viewpoints(self, threshold: int = 6, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Summarized articles relevant enough for analysis that no enabled
        analyst has covered yet. Most relevant and newest first.

        Args:
            threshold: Minimum relevance score (inclusive)
            limit: Maximum number of articles

        Returns:
            List of dictionaries with article and summary fields
        """
        covered = (select(Viewpoint.article_id)
                   .join(Persona, Viewpoint.persona_id == Persona.id)
                   .where(Persona.kind == PersonaKind.ANALYST, Persona.enabled.is_(True)))

        with self.session_scope() as session:
            rows = (session.query(Article, Summary)
                    .join(Summary, Summary.article_id == Article.id)
                    .filter(Summary.relevance_score >= threshold)
                    .filter(Article.id.not_in(covered))
                    .order_by(Summary.relevance_score.desc(), Article.created_at.desc(), Article.id.desc())
                    .limit(limit)
                    .all())

            return [self._article_payload(article, summary) for article, summary in rows]

    def get_articles_needing_roundtable(self, limit: int = 20) -> List[Dict[str, Any]]:
        """
        Articles with a viewpoint from every enabled analyst but no
        roundtable viewpoint yet.

        Returns:
            List of dictionaries with article and summary fields plus
            'viewpoints' mapping analyst slug to viewpoint text
        """
        with self.session_scope() as session:
            analyst_ids = [
                pid for (pid,) in session.query(Persona.id)
                .filter(Persona.kind == PersonaKind.ANALYST, Persona.enabled.is_(True))
                .all()
            ]
            if not analyst_ids:
                return []

            roundtable_done = (select(Viewpoint.article_id)
                               .join(Persona, Viewpoint.persona_id == Persona.id)
                               .where(Persona.kind == PersonaKind.ROUNDTABLE))

            complete = (select(Viewpoint.article_id)
                        .where(Viewpoint.persona_id.in_(analyst_ids))
                        .group_by(Viewpoint.article_id)
                        .having(func.count(func.distinct(Viewpoint.persona_id)) == len(analyst_ids)))

            rows = (session.query(Article, Summary)
                    .outerjoin(Summary, Summary.article_id == Article.id)
                    .filter(Article.id.in_(complete))
                    .filter(Article.id.not_in(roundtable_done))
                    .order_by(Article.created_at.desc(), Article.id.desc())
                    .limit(limit)
                    .all())

            payloads = []
            for article, summary in rows:
                payload = self._article_payload(article, summary)
                views = (session.query(Persona.slug, Viewpoint.viewpoint_text)
                         .join(Viewpoint, Viewpoint.persona_id == Persona.id)
                         .filter(Viewpoint.article_id == article.id, Persona.id.in_(analyst_ids))
                         .all())
                payload['viewpoints'] = {slug: text_ for slug, text_ in views}
                payloads.append(payload)
            return payloads

    def get_article_payload(self, article_id: int) -> Optional[Dict[str, Any]]:
        """Article and summary fields of one article, as used by the generators."""
        with self.session_scope() as session:
            row = (session.query(Article, Summary)
                   .outerjoin(Summary, Summary.article_id == Article.id)
                   .filter(Article.id == article_id)
                   .first())
            if not row:
                return None
            return self._article_payload(*row)

    @staticmethod
    def _article_payload(article: Article, summary: Optional[Summary]) -> Dict[str, Any]:
        return {
            'id': article.id,
            'title': article.title,
            'url': article.url,
            'raw_content': article.raw_content or '',
            'short_summary': summary.short_summary if summary else '',
            'key_takeaways': list(summary.key_takeaways or []) if summary else [],
            'topic_tags': list(summary.topic_tags or []) if summary else [],
            'relevance_score': summary.relevance_score if summary else None,
        }

    # ------------------------------------------------------------------
    # Agent logs and pipeline runs
    # ------------------------------------------------------------------

    def log_action(
        self,
        agent_name: str,
        action: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        run_id: Optional[str] = None
    ):
        """
        Append an agent log entry.

        Logging never interrupts the caller: if the row cannot be written the
        entry goes to stderr instead.
        """
        try:
            with self.session_scope() as session:
                session.add(AgentLog(
                    agent_name=agent_name,
                    action=action,
                    status=_coerce_enum(LogStatus, status, LogStatus.WARNING),
                    details=details or {},
                    run_id=run_id,
                ))
        except SQLAlchemyError as e:
            print(f"Warning: Failed to save agent log {agent_name}/{action} [{status}]: {e}", file=sys.stderr)

    def get_recent_logs(self, limit: int = 50, status: Optional[str] = None, run_id: Optional[str] = None) -> List[AgentLog]:
        with self.session_scope() as session:
            query = session.query(AgentLog)
            if status:
                query = query.filter(AgentLog.status == _coerce_enum(LogStatus, status, None))
            if run_id:
                query = query.filter(AgentLog.run_id == run_id)
            return query.order_by(AgentLog.timestamp.desc(), AgentLog.id.desc()).limit(limit).all()

    def start_run(self, pipeline: str, force: bool = False, lock_minutes: Optional[int] = None) -> str:
        """
        Register a new pipeline run.

        Args:
            pipeline: 'ingestion', 'viewpoint' or 'roundtable'
            force: Start even if another run of the same pipeline is in progress
            lock_minutes: How long an unfinished run blocks new ones
                          (defaults to RUN_LOCK_MINUTES from settings)

        Returns:
            The new run ID

        Raises:
            RunInProgressError: If a recent run of the same pipeline is still processing
        """
        if lock_minutes is None:
            from settings import RUN_LOCK_MINUTES
            lock_minutes = RUN_LOCK_MINUTES

        pipeline_name = _coerce_enum(PipelineName, pipeline, None)
        if pipeline_name is None:
            raise ValueError(f"Unknown pipeline: {pipeline}")

        now = utcnow()
        run_id = uuid.uuid4().hex

        with self.session_scope() as session:
            if not force:
                active = (session.query(PipelineRun)
                          .filter(PipelineRun.pipeline == pipeline_name,
                                  PipelineRun.status == 'processing',
                                  PipelineRun.started_at >= now - timedelta(minutes=lock_minutes))
                          .order_by(PipelineRun.started_at.desc())
                          .first())
                if active:
                    raise RunInProgressError(pipeline_name.value, active.run_id, active.started_at)

            session.add(PipelineRun(run_id=run_id, pipeline=pipeline_name, status='processing', started_at=now))

        return run_id

    def finish_run(self, run_id: str, status: str, stats: Optional[Dict[str, Any]] = None, error_message: Optional[str] = None):
        """Record the outcome of a run ('completed' or 'error')."""
        with self.session_scope() as session:
            run = session.query(PipelineRun).filter_by(run_id=run_id).first()
            if not run:
                return
            run.status = status
            run.stats = stats
            run.error_message = error_message
            run.completed_at = utcnow()

    def get_recent_runs(self, limit: int = 10) -> List[PipelineRun]:
        with self.session_scope() as session:
            return session.query(PipelineRun).order_by(PipelineRun.started_at.desc()).limit(limit).all()

    # ------------------------------------------------------------------
    # Seed data
    # ------------------------------------------------------------------

    def seed_defaults(self) -> Dict[str, int]:
        """
        Insert the default sources and personas. Safe to call repeatedly.

        Returns:
            Dictionary with the number of sources created and personas refreshed
        """
        from .seed import DEFAULT_SOURCES
        from domain.personas import ANALYSTS, ROUNDTABLE

        created = 0
        for source in DEFAULT_SOURCES:
            if self.add_source(**source):
                created += 1

        personas = 0
        for persona in list(ANALYSTS.values()) + [ROUNDTABLE]:
            self.upsert_persona(
                slug=persona.slug,
                name=persona.name,
                kind=persona.kind,
                title=persona.title,
                background=persona.background,
                framework=persona.framework,
                show_names=list(persona.show_names),
            )
            personas += 1

        return {'sources': created, 'personas': personas}
