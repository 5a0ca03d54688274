"""
Database package for the healthcare IT intelligence store.
"""

from .models import (
    Base, Source, SourceKind, SourcePriority, Article, ProcessingStatus, Organization, OrganizationType,
    Person, Technology, TechnologyCategory, ArticleOrganization, ArticlePerson, ArticleTechnology,
    Summary, Persona, PersonaKind, Transcript, TranscriptStatus, Viewpoint, AgentLog, LogStatus,
    PipelineRun, PipelineName, LLMApiCall
)
from .database import Database, RunInProgressError

__all__ = ['Base', 'Source', 'SourceKind', 'SourcePriority', 'Article', 'ProcessingStatus', 'Organization', 'OrganizationType', 'Person', 'Technology', 'TechnologyCategory', 'ArticleOrganization', 'ArticlePerson', 'ArticleTechnology', 'Summary', 'Persona', 'PersonaKind', 'Transcript', 'TranscriptStatus', 'Viewpoint', 'AgentLog', 'LogStatus', 'PipelineRun', 'PipelineName', 'LLMApiCall', 'Database', 'RunInProgressError']
