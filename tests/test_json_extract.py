"""Tests for JSON extraction from model responses and structured outputs."""

import json

import pytest

from conftest import FakeGenerator
from llm.openai_client import GenerationError, StructuredOutputError, render_prompts, structured_output
from llm.parsing import extract_json_object


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {'a': 1}

    def test_object_wrapped_in_prose_and_fences(self):
        text = 'Here you go:\n```json\n{"summary": "x", "tags": ["AI"]}\n```\nAnything else?'
        assert extract_json_object(text) == {'summary': 'x', 'tags': ['AI']}

    def test_braces_inside_strings(self):
        assert extract_json_object('{"quote": "use {braces} } carefully"}') == {'quote': 'use {braces} } carefully'}

    def test_escaped_quotes(self):
        assert extract_json_object(r'{"q": "he said \"hi\" {"}') == {'q': 'he said "hi" {'}

    def test_skips_unparseable_block(self):
        assert extract_json_object('{not json} then {"ok": true}') == {'ok': True}

    def test_nested_payload_inside_broken_wrapper(self):
        assert extract_json_object('{ junk {"ok": 1} }') == {'ok': 1}

    @pytest.mark.parametrize("text", [None, '', 'I cannot help with that.', '[1, 2, 3]', '{"unterminated": 1'])
    def test_no_object(self, text):
        assert extract_json_object(text) is None


class TestStructuredOutput:
    def test_summary_relevance_is_clamped(self):
        generator = FakeGenerator({'article_summary': json.dumps({"summary": "s", "relevanceScore": 42})})
        result = structured_output(generator, 'article_summary', {'title': 't', 'content': 'c', 'topic_tags': []})
        assert result.relevance_score == 10

    @pytest.mark.parametrize("score", [0, None, "high"])
    def test_unusable_relevance_defaults_to_five(self, score):
        generator = FakeGenerator({'article_summary': json.dumps({"summary": "s", "relevanceScore": score})})
        result = structured_output(generator, 'article_summary', {'title': 't', 'content': 'c', 'topic_tags': []})
        assert result.relevance_score == 5

    @pytest.mark.parametrize("raw", ["1e999", "Infinity", "-Infinity", "NaN"])
    def test_non_finite_relevance_defaults_to_five(self, raw):
        generator = FakeGenerator({'article_summary': '{"summary": "s", "relevanceScore": %s}' % raw})
        result = structured_output(generator, 'article_summary', {'title': 't', 'content': 'c', 'topic_tags': []})
        assert result.relevance_score == 5

    def test_non_finite_brief_rating_is_dropped(self):
        generator = FakeGenerator({'output_brief': '{"brief": "b", "relevanceRating": 1e999}'})
        result = structured_output(generator, 'output_brief', {
            'analyst_name': 'Bill Russell', 'audience_title': 'CIO', 'brief_prompt': 'Brief a CIO.',
            'viewpoint_text': 'v', 'title': 't', 'summary': 's', 'topic_tags': ['EHR'],
        })
        assert result.relevance_rating is None

    def test_unexpected_validator_error_is_structured(self, monkeypatch):
        from llm import openai_client

        class Exploding:
            @classmethod
            def model_validate(cls, payload):
                raise OverflowError('cannot convert float infinity to integer')

        monkeypatch.setattr(openai_client, '_load_pydantic_schema', lambda task_name: Exploding)
        with pytest.raises(StructuredOutputError):
            structured_output(FakeGenerator(), 'article_summary', {'title': 't', 'content': 'c', 'topic_tags': []})

    def test_missing_json_raises(self):
        generator = FakeGenerator({'article_summary': 'Sorry, no summary today.'})
        with pytest.raises(StructuredOutputError):
            structured_output(generator, 'article_summary', {'title': 't', 'content': 'c', 'topic_tags': []})

    def test_schema_violation_raises(self):
        generator = FakeGenerator({'article_summary': '{"takeaways": ["x"]}'})
        with pytest.raises(StructuredOutputError):
            structured_output(generator, 'article_summary', {'title': 't', 'content': 'c', 'topic_tags': []})

    def test_structured_error_is_a_generation_error(self):
        assert issubclass(StructuredOutputError, GenerationError)

    def test_call_metadata_is_forwarded(self):
        generator = FakeGenerator()
        structured_output(generator, 'article_summary', {'title': 'Epic news', 'content': 'c', 'topic_tags': ['AI']},
                          temperature=0.3, context_data={'article_id': 9})
        call = generator.calls[0]
        assert call['task_name'] == 'article_summary'
        assert call['temperature'] == 0.3
        assert call['context_data'] == {'article_id': 9}
        assert 'Epic news' in call['user_prompt']


def test_render_prompts_includes_roundtable_voices():
    _, user_prompt = render_prompts('roundtable', {
        'persona_prompt': 'You host the roundtable.',
        'title': 'Ransomware hits a health system',
        'summary': 'Summary',
        'viewpoints': [{'name': 'Drex DeFord', 'text': 'Patch your VPNs.'}],
    })
    assert "DREX DEFORD'S PERSPECTIVE:" in user_prompt
    assert 'Patch your VPNs.' in user_prompt
