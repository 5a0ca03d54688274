"""End-to-end tests for the ingestion, viewpoint and roundtable pipelines."""

import json

import pytest
import requests
from sqlalchemy.exc import SQLAlchemyError

from conftest import FakeFetcher, FakeGenerator, make_candidate
from db import RunInProgressError
from db.models import AgentLog, Article, LogStatus, Organization, ProcessingStatus, Viewpoint
from domain.personas import OUTPUT_PERSONAS
from llm.openai_client import GenerationError
from processors.pipeline import IngestionPipeline, RoundtablePipeline, ViewpointPipeline


def _count(db, model, *criteria):
    with db.session_scope() as session:
        return session.query(model).filter(*criteria).count()


def _warnings(db):
    return _count(db, AgentLog, AgentLog.status == LogStatus.WARNING)


@pytest.fixture()
def feed_db(db):
    db.add_source('Healthcare IT News', 'https://www.healthcareitnews.com', 'rss',
                  feed_url='https://www.healthcareitnews.com/home/feed', priority='high')
    return db


def _summary_response(relevance, tags):
    return json.dumps({"summary": "A summary.", "takeaways": ["t"], "tags": tags, "relevanceScore": relevance})


class TestIngestionPipeline:
    def test_three_items_one_already_stored(self, feed_db, generator):
        db = feed_db
        db.save_article(url='https://news.example/2', title='Old', content_hash='stored-hash')
        items = [make_candidate(f"https://news.example/{i}") for i in (1, 2, 3)]
        fetch = FakeFetcher({'Healthcare IT News': items})

        summary = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        assert summary.status == 'completed'
        assert summary.candidates_found == 3
        assert summary.duplicates_skipped == 1
        assert summary.articles_processed == 2
        assert summary.summaries_generated == 2
        assert summary.errors == 0
        assert generator.tasks().count('entity_extraction') == 2
        assert generator.tasks().count('article_summary') == 2
        assert _count(db, Article) == 3

    def test_second_run_creates_nothing(self, feed_db, generator):
        db = feed_db
        fetch = FakeFetcher({'Healthcare IT News': [make_candidate(f"https://news.example/{i}") for i in range(3)]})

        IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()
        second = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        assert second.articles_processed == 0
        assert second.duplicates_skipped == 3
        assert _count(db, Article) == 3

    def test_same_content_under_two_urls_is_one_article(self, feed_db, generator):
        items = [make_candidate('https://news.example/a', content='Same body'),
                 make_candidate('https://news.example/a?utm=x', content='Same body')]
        summary = IngestionPipeline(feed_db, generator, fetch=FakeFetcher({'Healthcare IT News': items}),
                                    verbose=False).run()
        assert summary.articles_processed == 1
        assert summary.duplicates_skipped == 1

    def test_article_is_enriched(self, feed_db, generator):
        db = feed_db
        fetch = FakeFetcher({'Healthcare IT News': [make_candidate('https://news.example/1')]})

        summary = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        article = db.get_recent_articles()[0]
        assert article.processing_status == ProcessingStatus.SUMMARIZED
        assert article.summary.relevance_score == 7
        assert article.source_id == db.get_source_by_name('Healthcare IT News').id
        found = db.get_article_entities(article.id)
        # Cerner and Oracle Cerner collapse into one organization
        assert [name for name, _, _ in found['organizations']] == ['Banner Health', 'Oracle Health']
        assert summary.entities_extracted == 4

    def test_extraction_prose_is_a_soft_failure(self, feed_db):
        db = feed_db
        generator = FakeGenerator({'entity_extraction': 'I could not find any entities in this article.'})
        fetch = FakeFetcher({'Healthcare IT News': [make_candidate('https://news.example/1')]})

        summary = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        article = db.get_recent_articles()[0]
        assert article.processing_status == ProcessingStatus.SUMMARIZED
        assert db.get_article_entities(article.id) == {'organizations': [], 'people': [], 'technologies': []}
        assert summary.warnings == 1
        assert summary.errors == 0
        assert _warnings(db) == 1

    def test_summary_failure_leaves_article_extracted(self, feed_db):
        db = feed_db
        generator = FakeGenerator({'article_summary': GenerationError('timeout')})
        fetch = FakeFetcher({'Healthcare IT News': [make_candidate('https://news.example/1')]})

        summary = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        assert summary.summaries_generated == 0
        assert summary.warnings == 1
        assert db.get_recent_articles()[0].processing_status == ProcessingStatus.EXTRACTED

    def test_failing_source_does_not_stop_others(self, feed_db, generator):
        db = feed_db
        db.add_source('Broken', 'https://broken.example', 'scrape', priority='high')
        fetch = FakeFetcher({
            'Broken': requests.ConnectionError('connection refused'),
            'Healthcare IT News': [make_candidate('https://news.example/1')],
        })

        summary = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        assert summary.source_errors == 1
        assert summary.sources_checked == 1
        assert summary.articles_processed == 1
        assert summary.status == 'completed'
        assert db.get_source_by_name('Broken').error_count == 1
        assert fetch.calls == ['Healthcare IT News', 'Broken']

    def test_item_persistence_error_is_counted(self, feed_db, generator, monkeypatch):
        db = feed_db
        original = db.save_article

        def flaky_save(**kwargs):
            if kwargs['url'].endswith('/bad'):
                raise RuntimeError('constraint violated')
            return original(**kwargs)

        monkeypatch.setattr(db, 'save_article', flaky_save)
        fetch = FakeFetcher({'Healthcare IT News': [make_candidate('https://news.example/bad'),
                                                    make_candidate('https://news.example/good')]})

        summary = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        assert summary.errors == 1
        assert summary.articles_processed == 1
        assert summary.status == 'completed'

    def test_failed_item_traceback_in_debug_mode(self, feed_db, generator, monkeypatch, capsys):
        import settings

        def broken_save(**kwargs):
            raise RuntimeError('constraint violated')

        monkeypatch.setattr(settings, 'DEBUG', True)
        monkeypatch.setattr(feed_db, 'save_article', broken_save)
        fetch = FakeFetcher({'Healthcare IT News': [make_candidate('https://news.example/bad')]})

        IngestionPipeline(feed_db, generator, fetch=fetch, verbose=False).run()

        err = capsys.readouterr().err
        assert 'Traceback' in err
        assert 'RuntimeError: constraint violated' in err

    def test_source_bookkeeping_failure_does_not_stop_others(self, feed_db, generator, monkeypatch):
        db = feed_db
        db.add_source('Second', 'https://second.example', 'scrape', priority='low')

        def locked(source_id):
            raise SQLAlchemyError('database is locked')

        monkeypatch.setattr(db, 'record_source_checked', locked)
        fetch = FakeFetcher({
            'Healthcare IT News': [make_candidate('https://news.example/1')],
            'Second': [make_candidate('https://second.example/1')],
        })

        summary = IngestionPipeline(db, generator, fetch=fetch, verbose=False).run()

        assert summary.status == 'completed'
        assert fetch.calls == ['Healthcare IT News', 'Second']
        assert summary.articles_processed == 2
        assert summary.errors == 2

    def test_non_finite_relevance_is_not_an_item_error(self, feed_db):
        generator = FakeGenerator({'article_summary': '{"summary": "x", "relevanceScore": 1e999}'})
        fetch = FakeFetcher({'Healthcare IT News': [make_candidate('https://news.example/1')]})

        summary = IngestionPipeline(feed_db, generator, fetch=fetch, verbose=False).run()

        assert summary.errors == 0
        assert summary.summaries_generated == 1
        assert feed_db.get_recent_articles()[0].summary.relevance_score == 5

    def test_canonical_organization_across_articles(self, feed_db):
        db = feed_db
        mentions = {'First': 'Cerner', 'Second': 'Cerner Corporation', 'Third': 'Oracle Cerner'}

        def entities(call):
            name = next(m for title, m in mentions.items() if f"ARTICLE TITLE: {title}" in call['user_prompt'])
            return json.dumps({"organizations": [{"name": name, "type": "vendor"}]})

        generator = FakeGenerator({'entity_extraction': entities})
        items = [make_candidate(f"https://news.example/{t}", title=t) for t in mentions]

        IngestionPipeline(db, generator, fetch=FakeFetcher({'Healthcare IT News': items}), verbose=False).run()

        assert _count(db, Organization) == 1
        with db.session_scope() as session:
            assert session.query(Organization.canonical_name).scalar() == 'Oracle Health'

    def test_concurrent_run_is_refused(self, feed_db, generator):
        feed_db.start_run('ingestion')
        pipeline = IngestionPipeline(feed_db, generator, fetch=FakeFetcher({}), verbose=False)
        with pytest.raises(RunInProgressError):
            pipeline.run()
        assert pipeline.run(force=True).status == 'completed'

    def test_run_is_recorded(self, feed_db, generator):
        summary = IngestionPipeline(feed_db, generator, fetch=FakeFetcher({}), verbose=False).run()
        run = feed_db.get_recent_runs()[0]
        assert run.run_id == summary.run_id
        assert run.status == 'completed'
        assert run.stats['sources_checked'] == 1


def _summarized_article(db, url, relevance=8, tags=('EHR',)):
    article_id = db.save_article(url=url, title=f"Story {url}", content_hash=url, raw_content='Body')
    db.save_summary(article_id, 'Summary', ['t'], list(tags), relevance)
    return article_id


class TestViewpointPipeline:
    def test_routes_and_generates_briefs(self, seeded_db, generator):
        db = seeded_db
        article_id = _summarized_article(db, 'https://news.example/sec', tags=['ransomware', 'cybersecurity'])

        summary = ViewpointPipeline(db, generator, verbose=False).run()

        assert summary.analyst_viewpoints == 1
        assert summary.briefs_generated == len(OUTPUT_PERSONAS)
        assert summary.total_viewpoints == 1 + len(OUTPUT_PERSONAS)

        views = db.get_viewpoints_for_article(article_id)
        analyst = views[0]
        assert analyst.persona.slug == 'drex-deford'
        assert analyst.generation_metadata['routedTo'] == 'drex-deford'
        assert analyst.model_used == 'fake-model'

        briefs = [v for v in views if v.persona.kind.value == 'output']
        assert {v.persona.slug for v in briefs} == {f"output-{slug}" for slug in OUTPUT_PERSONAS}
        brief = briefs[0]
        assert brief.confidence_score == 0.85
        assert brief.key_insights == ['Plan capacity', 'ACTION: Review contracts']
        assert brief.generation_metadata['analystSource'] == 'drex-deford'

    def test_below_threshold_is_ignored(self, seeded_db, generator):
        _summarized_article(seeded_db, 'https://news.example/low', relevance=5)
        summary = ViewpointPipeline(seeded_db, generator, verbose=False).run()
        assert summary.articles_found == 0
        assert generator.calls == []

    def test_second_run_finds_nothing(self, seeded_db, generator):
        _summarized_article(seeded_db, 'https://news.example/1')
        ViewpointPipeline(seeded_db, generator, verbose=False).run()
        assert ViewpointPipeline(seeded_db, generator, verbose=False).run().articles_found == 0

    def test_failed_viewpoint_skips_briefs(self, seeded_db):
        generator = FakeGenerator({'analyst_viewpoint': 'Prose without JSON.'})
        _summarized_article(seeded_db, 'https://news.example/1')

        summary = ViewpointPipeline(seeded_db, generator, verbose=False).run()

        assert summary.analyst_viewpoints == 0
        assert summary.briefs_generated == 0
        assert summary.warnings == 1
        assert 'output_brief' not in generator.tasks()

    def test_one_failed_brief_does_not_stop_the_others(self, seeded_db):
        def brief(call):
            if call['context_data']['persona'] == 'output-ciso':
                return GenerationError('rate limited')
            return json.dumps({"brief": "Brief text"})

        generator = FakeGenerator({'output_brief': brief})
        _summarized_article(seeded_db, 'https://news.example/1')

        summary = ViewpointPipeline(seeded_db, generator, verbose=False).run()

        assert summary.briefs_generated == len(OUTPUT_PERSONAS) - 1
        assert summary.warnings == 1

    def test_non_finite_brief_rating_keeps_every_brief(self, seeded_db):
        def brief(call):
            if call['context_data']['persona'] == 'output-cio':
                return '{"brief": "Brief text", "relevanceRating": 1e999}'
            return json.dumps({"brief": "Brief text", "relevanceRating": 6})

        generator = FakeGenerator({'output_brief': brief})
        article_id = _summarized_article(seeded_db, 'https://news.example/1')

        summary = ViewpointPipeline(seeded_db, generator, verbose=False).run()

        assert summary.briefs_generated == len(OUTPUT_PERSONAS)
        assert summary.errors == 0
        cio = next(v for v in seeded_db.get_viewpoints_for_article(article_id) if v.persona.slug == 'output-cio')
        assert cio.generation_metadata['relevanceRating'] is None

    def test_disabled_routed_analyst_is_a_run_error(self, seeded_db, generator):
        from db.models import Persona

        db = seeded_db
        with db.session_scope() as session:
            session.query(Persona).filter(Persona.slug == 'drex-deford').update({'enabled': False})
        _summarized_article(db, 'https://news.example/sec', tags=['cybersecurity'])

        summary = ViewpointPipeline(db, generator, verbose=False).run()

        assert summary.status == 'error'
        assert 'drex-deford' in summary.error_message
        assert summary.errors == 0
        assert generator.calls == []
        assert db.get_recent_runs()[0].status == 'error'

    def test_transcript_excerpts_ground_the_voice(self, seeded_db, generator):
        db = seeded_db
        persona = db.get_persona_by_slug('drex-deford')
        transcript_id = db.save_transcript(persona.id, 'vid1', 'words ' * 30)
        db.mark_transcript_processed(transcript_id, [{'quote': 'Identity is the new perimeter.'}], ['cybersecurity'])
        article_id = _summarized_article(db, 'https://news.example/1', tags=['cybersecurity'])

        ViewpointPipeline(db, generator, verbose=False).run()

        call = next(c for c in generator.calls if c['task_name'] == 'analyst_viewpoint')
        assert 'Identity is the new perimeter.' in call['system_prompt']
        analyst = db.get_viewpoints_for_article(article_id)[0]
        assert analyst.generation_metadata['transcriptExcerpts'] == 1

    def test_no_analysts_is_a_run_error(self, db, generator):
        _summarized_article(db, 'https://news.example/1')
        summary = ViewpointPipeline(db, generator, verbose=False).run()
        assert summary.status == 'error'
        assert db.get_recent_runs()[0].status == 'error'

    def test_generate_for_article(self, seeded_db, generator):
        article_id = _summarized_article(seeded_db, 'https://news.example/1')
        pipeline = ViewpointPipeline(seeded_db, generator, verbose=False)

        result = pipeline.generate_for_article(article_id, 'sarah-richardson')

        assert result.text.startswith("Here's what I'm seeing")
        assert [v.persona.slug for v in seeded_db.get_viewpoints_for_article(article_id)] == ['sarah-richardson']

    def test_generate_for_article_errors(self, seeded_db, generator):
        from domain.personas import UnknownPersonaError

        pipeline = ViewpointPipeline(seeded_db, generator, verbose=False)
        with pytest.raises(UnknownPersonaError):
            pipeline.generate_for_article(1, 'nobody')
        with pytest.raises(ValueError):
            pipeline.generate_for_article(999, 'bill-russell')


class TestRoundtablePipeline:
    def test_roundtable_after_all_analysts(self, seeded_db, generator):
        db = seeded_db
        article_id = _summarized_article(db, 'https://news.example/1')
        viewpoints = ViewpointPipeline(db, generator, verbose=False)

        viewpoints.generate_for_article(article_id, 'bill-russell')
        viewpoints.generate_for_article(article_id, 'drex-deford')
        assert RoundtablePipeline(db, generator, verbose=False).run().articles_found == 0

        viewpoints.generate_for_article(article_id, 'sarah-richardson')
        summary = RoundtablePipeline(db, generator, verbose=False).run()

        assert summary.roundtables_generated == 1
        roundtable = next(v for v in db.get_viewpoints_for_article(article_id) if v.persona.slug == 'newsday')
        assert roundtable.confidence_score == 0.85
        assert roundtable.generation_metadata == {
            'type': 'roundtable',
            'analysts': ['bill-russell', 'drex-deford', 'sarah-richardson'],
        }

        call = next(c for c in generator.calls if c['task_name'] == 'roundtable')
        assert "DREX DEFORD'S PERSPECTIVE:" in call['user_prompt']

        assert RoundtablePipeline(db, generator, verbose=False).run().articles_found == 0
        assert _count(db, Viewpoint) == 4
