"""Tests for the persona registry and prompt building."""

import pytest

from domain.personas import (
    ANALYSTS, OUTPUT_PERSONAS, ROUNDTABLE, UnknownPersonaError,
    analyst_slugs, build_persona_prompt, get_analyst,
)
from domain.routing import DEFAULT_ANALYST, TOPIC_TO_ANALYST


def test_three_analysts():
    assert analyst_slugs() == ['bill-russell', 'drex-deford', 'sarah-richardson']


def test_every_routing_target_is_an_analyst():
    assert set(TOPIC_TO_ANALYST.values()) | {DEFAULT_ANALYST} <= set(ANALYSTS)


def test_unknown_analyst():
    with pytest.raises(UnknownPersonaError) as exc:
        get_analyst('newsday')
    assert exc.value.slug == 'newsday'


@pytest.mark.parametrize("slug", list(ANALYSTS) + [ROUNDTABLE.slug])
def test_profiles_exist(slug):
    assert build_persona_prompt(slug).strip()


@pytest.mark.parametrize("template", list(OUTPUT_PERSONAS.values()), ids=list(OUTPUT_PERSONAS))
def test_output_templates(template):
    assert template.kind == 'output'
    assert template.persona_slug == f"output-{template.slug}"
    assert template.prompt.strip()


def test_excerpts_are_appended_numbered():
    prompt = build_persona_prompt('drex-deford', ['Patch first.', 'Segment networks.'])
    assert prompt.startswith(build_persona_prompt('drex-deford'))
    assert '## RECENT SHOW EXCERPTS' in prompt
    assert '1. "Patch first."' in prompt
    assert '2. "Segment networks."' in prompt


def test_build_prompt_for_unknown_slug():
    with pytest.raises(UnknownPersonaError):
        build_persona_prompt('output-cio')
