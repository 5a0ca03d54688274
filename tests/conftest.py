"""Shared fixtures: in-memory database, scripted text generator, fake fetcher."""

import json

import pytest

from db import Database
from extractors import CandidateArticle, content_hash
from llm.openai_client import GenerationError


ENTITIES_RESPONSE = json.dumps({
    "organizations": [
        {"name": "Cerner", "type": "vendor", "confidence": 0.9},
        {"name": "Oracle Cerner", "type": "vendor", "confidence": 0.7},
        {"name": "Banner Health", "type": "health_system", "confidence": 0.95},
    ],
    "people": [
        {"name": "Jane Doe", "title": "CIO", "organization": "Banner Health", "confidence": 0.9},
    ],
    "technologies": [
        {"name": "Cerner Millennium", "category": "EHR", "vendor": "Cerner", "confidence": 0.85},
    ],
})

SUMMARY_RESPONSE = json.dumps({
    "summary": "Banner Health moves its EHR to Oracle Health.",
    "takeaways": ["Large migration", "Cloud hosting"],
    "tags": ["EHR", "cloud"],
    "relevanceScore": 7,
})

VIEWPOINT_RESPONSE = json.dumps({
    "viewpoint": "Here's what I'm seeing: this is a big bet on the cloud.",
    "keyInsights": ["Cloud is the default now"],
    "confidenceScore": 0.9,
})

BRIEF_RESPONSE = json.dumps({
    "brief": "What this means for you.",
    "headline": "EHR in the cloud",
    "keyTakeaways": ["Plan capacity"],
    "actionItems": ["Review contracts"],
    "relevanceRating": 8,
})

ROUNDTABLE_RESPONSE = json.dumps({
    "viewpoint": "Bill opened, Drex pushed back, Sarah brought it home.",
    "keyInsights": ["Three angles on one story"],
})

TRANSCRIPT_RESPONSE = json.dumps({
    "excerpts": [
        {"quote": "Identity is the new perimeter.", "topic": "security"},
        {"quote": "Tabletop exercises save lives.", "topic": "incident response"},
    ],
    "topicTags": ["Cybersecurity", "Ransomware"],
})

DEFAULT_RESPONSES = {
    'entity_extraction': ENTITIES_RESPONSE,
    'article_summary': SUMMARY_RESPONSE,
    'analyst_viewpoint': VIEWPOINT_RESPONSE,
    'output_brief': BRIEF_RESPONSE,
    'roundtable': ROUNDTABLE_RESPONSE,
    'transcript_excerpts': TRANSCRIPT_RESPONSE,
}


class FakeGenerator:
    """
    Text generator returning scripted responses per task.

    A response may be a string, an exception instance (raised), or a
    callable taking the call record and returning either.
    """

    model = 'fake-model'

    def __init__(self, responses=None):
        self.responses = dict(DEFAULT_RESPONSES)
        self.responses.update(responses or {})
        self.calls = []

    def generate(self, system_prompt, user_prompt, temperature=0.7, task_name=None, context_data=None):
        call = {
            'system_prompt': system_prompt,
            'user_prompt': user_prompt,
            'temperature': temperature,
            'task_name': task_name,
            'context_data': context_data,
        }
        self.calls.append(call)

        response = self.responses.get(task_name)
        if callable(response):
            response = response(call)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise GenerationError(f"No scripted response for {task_name}")
        return response

    def tasks(self):
        return [call['task_name'] for call in self.calls]


def make_candidate(url, title='Epic and Oracle Health news', content=None):
    content = f"Body of {url}" if content is None else content
    return CandidateArticle(
        title=title,
        url=url,
        content=content,
        content_hash=content_hash(content or url),
    )


class FakeFetcher:
    """Returns prepared candidates per source name; an exception instance is raised."""

    def __init__(self, by_source):
        self.by_source = by_source
        self.calls = []

    def __call__(self, source, max_items=None):
        self.calls.append(source.name)
        result = self.by_source.get(source.name, [])
        if isinstance(result, Exception):
            raise result
        return list(result)[:max_items]


@pytest.fixture()
def db():
    return Database('sqlite://')


@pytest.fixture()
def seeded_db(db):
    db.seed_defaults()
    return db


@pytest.fixture()
def generator():
    return FakeGenerator()
