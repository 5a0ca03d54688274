"""
SQLAlchemy models for the healthcare IT intelligence store.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Index, Enum, JSON, Float, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base
import enum

Base = declarative_base()


def utcnow():
    """Naive UTC timestamp (SQLite stores datetimes without zone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SourceKind(enum.Enum):
    """How a source is polled."""
    RSS = "rss"
    SITEMAP = "sitemap"
    SCRAPE = "scrape"


class SourcePriority(enum.Enum):
    """Polling priority of a source. Higher priority sources are fetched first."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ProcessingStatus(enum.Enum):
    """Enrichment stage reached by an article. Only ever moves forward."""
    SCRAPED = "scraped"
    EXTRACTED = "extracted"
    SUMMARIZED = "summarized"
    REVIEWED = "reviewed"


# Rank used to keep ProcessingStatus transitions monotonic
STATUS_RANK = {
    ProcessingStatus.SCRAPED: 0,
    ProcessingStatus.EXTRACTED: 1,
    ProcessingStatus.SUMMARIZED: 2,
    ProcessingStatus.REVIEWED: 3,
}


class OrganizationType(enum.Enum):
    HEALTH_SYSTEM = "health_system"
    VENDOR = "vendor"
    PAYER = "payer"
    STARTUP = "startup"
    AGENCY = "agency"
    OTHER = "other"


class TechnologyCategory(enum.Enum):
    EHR = "EHR"
    CYBERSECURITY = "cybersecurity"
    AI = "AI"
    INTEROPERABILITY = "interoperability"
    ANALYTICS = "analytics"
    TELEHEALTH = "telehealth"
    CLOUD = "cloud"
    OTHER = "other"


class PersonaKind(enum.Enum):
    """Variant of a persona row."""
    ANALYST = "analyst"          # Routed voice producing a primary viewpoint
    ROUNDTABLE = "roundtable"    # Synthesis of all analysts' viewpoints
    OUTPUT = "output"            # Template repackaging an analyst viewpoint for an audience


class TranscriptStatus(enum.Enum):
    RAW = "raw"
    PROCESSED = "processed"
    ERROR = "error"


class LogStatus(enum.Enum):
    STARTED = "started"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


class PipelineName(enum.Enum):
    INGESTION = "ingestion"
    VIEWPOINT = "viewpoint"
    ROUNDTABLE = "roundtable"


class Source(Base):
    """News source polled by the ingestion pipeline."""
    __tablename__ = 'sources'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    url = Column(String(2048), nullable=False)
    kind = Column(Enum(SourceKind), nullable=False)
    feed_url = Column(String(2048), nullable=True)
    scrape_selector = Column(String(255), nullable=True)
    priority = Column(Enum(SourcePriority), nullable=False, default=SourcePriority.MEDIUM)
    enabled = Column(Boolean, nullable=False, default=True, index=True)
    error_count = Column(Integer, nullable=False, default=0)
    last_checked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    articles = relationship('Article', back_populates='source')

    def __repr__(self):
        return f"<Source(name='{self.name}', kind={self.kind.value}, enabled={self.enabled})>"


class Article(Base):
    """Ingested article. Row identity is the URL."""
    __tablename__ = 'articles'

    id = Column(Integer, primary_key=True)
    source_id = Column(Integer, ForeignKey('sources.id', ondelete='SET NULL'), nullable=True, index=True)
    url = Column(String(2048), nullable=False, unique=True)
    title = Column(String(1000), nullable=False)
    author = Column(String(255))
    published_date = Column(DateTime, index=True)
    raw_content = Column(Text)
    content_hash = Column(String(64), nullable=False, index=True)
    processing_status = Column(Enum(ProcessingStatus), nullable=False, default=ProcessingStatus.SCRAPED, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    source = relationship('Source', back_populates='articles')
    summary = relationship('Summary', back_populates='article', uselist=False, cascade='all, delete-orphan')
    viewpoints = relationship('Viewpoint', back_populates='article', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Article(id={self.id}, status={self.processing_status.value}, title='{self.title[:50]}...')>"


class Organization(Base):
    """Canonical organization. canonical_name is the only identity key."""
    __tablename__ = 'organizations'

    id = Column(Integer, primary_key=True)
    canonical_name = Column(String(255), nullable=False, unique=True, index=True)
    type = Column(Enum(OrganizationType), nullable=False, default=OrganizationType.OTHER)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Organization(canonical_name='{self.canonical_name}', type={self.type.value})>"


class Person(Base):
    """Person mentioned in articles. Identity is best-effort (exact name)."""
    __tablename__ = 'people'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    title = Column(String(255))
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    organization = relationship('Organization')

    def __repr__(self):
        return f"<Person(name='{self.name}')>"


class Technology(Base):
    """Canonical technology, optionally linked to its vendor organization."""
    __tablename__ = 'technologies'

    id = Column(Integer, primary_key=True)
    canonical_name = Column(String(255), nullable=False, unique=True, index=True)
    category = Column(Enum(TechnologyCategory), nullable=False, default=TechnologyCategory.OTHER)
    vendor_id = Column(Integer, ForeignKey('organizations.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    vendor = relationship('Organization')

    def __repr__(self):
        return f"<Technology(canonical_name='{self.canonical_name}', category={self.category.value})>"


class ArticleOrganization(Base):
    __tablename__ = 'article_organizations'

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey('articles.id', ondelete='CASCADE'), nullable=False)
    organization_id = Column(Integer, ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    confidence = Column(Float, nullable=False, default=0.8)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship('Organization')

    __table_args__ = (
        UniqueConstraint('article_id', 'organization_id', name='uq_article_organization'),
    )


class ArticlePerson(Base):
    __tablename__ = 'article_people'

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey('articles.id', ondelete='CASCADE'), nullable=False)
    person_id = Column(Integer, ForeignKey('people.id', ondelete='CASCADE'), nullable=False)
    confidence = Column(Float, nullable=False, default=0.8)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    person = relationship('Person')

    __table_args__ = (
        UniqueConstraint('article_id', 'person_id', name='uq_article_person'),
    )


class ArticleTechnology(Base):
    __tablename__ = 'article_technologies'

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey('articles.id', ondelete='CASCADE'), nullable=False)
    technology_id = Column(Integer, ForeignKey('technologies.id', ondelete='CASCADE'), nullable=False)
    confidence = Column(Float, nullable=False, default=0.8)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    technology = relationship('Technology')

    __table_args__ = (
        UniqueConstraint('article_id', 'technology_id', name='uq_article_technology'),
    )


class Summary(Base):
    """AI summary of an article. One per article."""
    __tablename__ = 'summaries'

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey('articles.id', ondelete='CASCADE'), nullable=False, unique=True)
    short_summary = Column(Text, nullable=False)
    key_takeaways = Column(JSON, nullable=False, default=list)
    topic_tags = Column(JSON, nullable=False, default=list)
    relevance_score = Column(Integer, nullable=False, index=True)  # 1-10
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    article = relationship('Article', back_populates='summary')

    def __repr__(self):
        return f"<Summary(article_id={self.article_id}, relevance={self.relevance_score})>"


class Persona(Base):
    """Analyst voice, roundtable synthesis, or output-brief template."""
    __tablename__ = 'personas'

    id = Column(Integer, primary_key=True)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    kind = Column(Enum(PersonaKind), nullable=False, default=PersonaKind.ANALYST, index=True)
    name = Column(String(255), nullable=False)
    title = Column(String(255))
    background = Column(Text)
    framework = Column(Text)
    show_names = Column(JSON, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    transcripts = relationship('Transcript', back_populates='persona', cascade='all, delete-orphan')

    def __repr__(self):
        return f"<Persona(slug='{self.slug}', kind={self.kind.value})>"


class Transcript(Base):
    """Show transcript used to ground a persona's voice."""
    __tablename__ = 'transcripts'

    id = Column(Integer, primary_key=True)
    persona_id = Column(Integer, ForeignKey('personas.id', ondelete='CASCADE'), nullable=False, index=True)
    video_id = Column(String(64), nullable=False, unique=True)
    video_title = Column(String(500))
    video_url = Column(String(2048))
    published_date = Column(DateTime)
    raw_transcript = Column(Text, nullable=False)
    processed_excerpts = Column(JSON, nullable=False, default=list)  # [{"quote": ..., "topic": ...}]
    topic_tags = Column(JSON, nullable=False, default=list)
    processing_status = Column(Enum(TranscriptStatus), nullable=False, default=TranscriptStatus.RAW, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    persona = relationship('Persona', back_populates='transcripts')

    def __repr__(self):
        return f"<Transcript(video_id='{self.video_id}', status={self.processing_status.value})>"


class Viewpoint(Base):
    """Generated text for an (article, persona) pair. At most one per pair."""
    __tablename__ = 'viewpoints'

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey('articles.id', ondelete='CASCADE'), nullable=False, index=True)
    persona_id = Column(Integer, ForeignKey('personas.id', ondelete='CASCADE'), nullable=False, index=True)
    viewpoint_text = Column(Text, nullable=False)
    key_insights = Column(JSON, nullable=False, default=list)
    confidence_score = Column(Float, nullable=False, default=0.8)
    model_used = Column(String(100))
    generation_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    article = relationship('Article', back_populates='viewpoints')
    persona = relationship('Persona')

    __table_args__ = (
        UniqueConstraint('article_id', 'persona_id', name='uq_viewpoint_article_persona'),
    )

    def __repr__(self):
        return f"<Viewpoint(article_id={self.article_id}, persona_id={self.persona_id})>"


class AgentLog(Base):
    """Append-only log of pipeline actions."""
    __tablename__ = 'agent_logs'

    id = Column(Integer, primary_key=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    agent_name = Column(String(100), nullable=False)
    action = Column(String(100), nullable=False)
    status = Column(Enum(LogStatus), nullable=False, index=True)
    details = Column(JSON, nullable=True)
    run_id = Column(String(64), nullable=True, index=True)

    def __repr__(self):
        return f"<AgentLog(agent='{self.agent_name}', action='{self.action}', status={self.status.value})>"


class PipelineRun(Base):
    """One execution of a pipeline, used for run gating and run statistics."""
    __tablename__ = 'pipeline_runs'

    id = Column(Integer, primary_key=True)
    run_id = Column(String(64), nullable=False, unique=True)
    pipeline = Column(Enum(PipelineName), nullable=False, index=True)
    status = Column(String(20), nullable=False, default='processing', index=True)  # processing, completed, error
    stats = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_pipeline_runs_pipeline_status', 'pipeline', 'status'),
    )

    def __repr__(self):
        return f"<PipelineRun(run_id='{self.run_id}', pipeline={self.pipeline.value}, status={self.status})>"


class LLMApiCall(Base):
    """Log of LLM API calls for monitoring, debugging, and cost tracking."""
    __tablename__ = 'llm_api_calls'

    id = Column(Integer, primary_key=True)

    # Metadata of the call
    call_type = Column(String(50), nullable=False, index=True)  # 'chat_completion'
    task_name = Column(String(100), nullable=True, index=True)  # 'entity_extraction', 'analyst_viewpoint', etc.
    model = Column(String(100), nullable=False, index=True)

    # Timing
    started_at = Column(DateTime, nullable=False, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    # Tokens
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)

    # Prompts and response
    system_prompt = Column(Text, nullable=True)
    user_prompt = Column(Text, nullable=True)
    temperature = Column(Float, nullable=True)
    response_text = Column(Text, nullable=True)
    response_raw = Column(JSON, nullable=True)

    # Status and errors
    success = Column(Integer, nullable=False, default=1, index=True)  # 1=success, 0=error
    error_message = Column(Text, nullable=True)

    # Additional metadata (article_id, persona slug, etc.)
    context_data = Column(JSON, nullable=True)

    __table_args__ = (
        Index('idx_llm_api_calls_task_model', 'task_name', 'model'),
    )

    def __repr__(self):
        status = 'success' if self.success else 'error'
        duration = f"{self.duration_ms}ms" if self.duration_ms is not None else 'N/A'
        return f"<LLMApiCall(id={self.id}, task={self.task_name}, model={self.model}, status={status}, duration={duration})>"
