"""Tests for persistence: upserts, status transitions, selection queries and run gating."""

from datetime import timedelta

import pytest

from db import Database, RunInProgressError
from db.models import Organization, PipelineName, PipelineRun, ProcessingStatus, Technology, Viewpoint, utcnow
from domain.entities import ExtractedEntities, OrganizationMention, PersonMention, TechnologyMention


def _article(db, url='https://example.com/a', title='Article', content='body'):
    return db.save_article(url=url, title=title, content_hash=f"hash-{url}", raw_content=content)


def _count(db, model):
    with db.session_scope() as session:
        return session.query(model).count()


class TestSourcesAndSeed:
    def test_seed_is_idempotent(self, db):
        first = db.seed_defaults()
        second = db.seed_defaults()
        assert first == {'sources': 5, 'personas': 4}
        assert second['sources'] == 0
        assert len(db.get_sources()) == 5
        assert len(db.get_personas(kind='analyst')) == 3

    def test_enabled_sources_in_priority_order(self, db):
        db.add_source('Low', 'https://low.example', 'rss', feed_url='https://low.example/feed', priority='low')
        db.add_source('High', 'https://high.example', 'scrape', priority='high')
        db.add_source('Off', 'https://off.example', 'rss', priority='high', enabled=False)
        assert [s.name for s in db.get_enabled_sources()] == ['High', 'Low']

    def test_duplicate_source_name_is_rejected(self, db):
        assert db.add_source('A', 'https://a.example', 'rss')
        assert not db.add_source('A', 'https://other.example', 'rss')

    def test_source_error_count_only_increments(self, db):
        db.add_source('A', 'https://a.example', 'rss')
        source = db.get_source_by_name('A')
        db.record_source_error(source.id)
        db.record_source_error(source.id)
        db.record_source_checked(source.id)
        source = db.get_source_by_name('A')
        assert source.error_count == 2
        assert source.last_checked_at is not None

    def test_enable_disable(self, db):
        db.add_source('A', 'https://a.example', 'rss')
        assert db.set_source_enabled('A', False)
        assert db.get_enabled_sources() == []
        assert not db.set_source_enabled('missing', True)


class TestArticles:
    def test_exists_by_url_or_hash(self, db):
        db.save_article(url='https://example.com/a', title='A', content_hash='abc')
        assert db.article_exists('abc', 'https://example.com/other')
        assert db.article_exists('zzz', 'https://example.com/a')
        assert not db.article_exists('zzz', 'https://example.com/other')

    def test_reingest_same_url_keeps_identity(self, db):
        first = db.save_article(url='https://example.com/a', title='A', content_hash='abc')
        second = db.save_article(url='https://example.com/a', title='A v2', content_hash='def')
        assert first == second
        assert db.get_article(first).title == 'A v2'

    def test_status_only_moves_forward(self, db):
        article_id = _article(db)
        assert db.advance_status(article_id, ProcessingStatus.SUMMARIZED)
        assert not db.advance_status(article_id, ProcessingStatus.EXTRACTED)
        assert db.get_article(article_id).processing_status == ProcessingStatus.SUMMARIZED


class TestEntities:
    def _entities(self):
        return ExtractedEntities(
            organizations=[OrganizationMention('Oracle Health', 'vendor', 0.9),
                           OrganizationMention('Banner Health', 'health_system', 0.8)],
            people=[PersonMention('Jane Doe', 'CIO', 'Banner Health', 0.9)],
            technologies=[TechnologyMention('Millennium', 'EHR', 'Oracle Health', 0.7)],
        )

    def test_saving_twice_creates_no_new_rows(self, db):
        article_id = _article(db)
        db.save_entities(article_id, self._entities())
        db.save_entities(article_id, self._entities())

        assert _count(db, Organization) == 2
        assert _count(db, Technology) == 1
        found = db.get_article_entities(article_id)
        assert len(found['organizations']) == 2
        assert len(found['people']) == 1
        assert len(found['technologies']) == 1

    def test_entities_shared_across_articles(self, db):
        a = _article(db, url='https://example.com/a')
        b = _article(db, url='https://example.com/b')
        db.save_entities(a, self._entities())
        db.save_entities(b, self._entities())
        assert _count(db, Organization) == 2
        assert [name for name, _, _ in db.get_article_entities(b)['organizations']] == ['Banner Health', 'Oracle Health']

    def test_saving_entities_marks_article_extracted(self, db):
        article_id = _article(db)
        db.save_entities(article_id, self._entities())
        assert db.get_article(article_id).processing_status == ProcessingStatus.EXTRACTED

    def test_technology_vendor_is_resolved(self, db):
        article_id = _article(db)
        db.save_entities(article_id, self._entities())
        with db.session_scope() as session:
            tech = session.query(Technology).one()
            assert tech.vendor_id is not None
            assert session.get(Organization, tech.vendor_id).canonical_name == 'Oracle Health'


class TestSummaries:
    def test_summary_upsert_and_clamp(self, db):
        article_id = _article(db)
        db.save_summary(article_id, 'first', [], ['AI'], 15)
        db.save_summary(article_id, 'second', ['t'], ['AI'], 0)
        article = db.get_article(article_id)
        assert article.summary.short_summary == 'second'
        assert article.summary.relevance_score == 1
        assert article.processing_status == ProcessingStatus.SUMMARIZED


class TestViewpointSelection:
    def test_threshold_is_inclusive(self, seeded_db):
        db = seeded_db
        low = _article(db, url='https://example.com/low')
        high = _article(db, url='https://example.com/high')
        db.save_summary(low, 's', [], [], 5)
        db.save_summary(high, 's', [], [], 6)

        assert [a['id'] for a in db.get_articles_needing_viewpoints(threshold=6)] == [high]

    def test_covered_articles_are_excluded(self, seeded_db):
        db = seeded_db
        article_id = _article(db)
        db.save_summary(article_id, 's', [], [], 8)
        persona = db.get_persona_by_slug('bill-russell')
        db.save_viewpoint(article_id, persona.id, 'text')

        assert db.get_articles_needing_viewpoints() == []

    def test_brief_alone_does_not_count_as_coverage(self, seeded_db):
        db = seeded_db
        article_id = _article(db)
        db.save_summary(article_id, 's', [], [], 8)
        brief_id = db.ensure_persona('output-cio', 'CIO Brief', 'output')
        db.save_viewpoint(article_id, brief_id, 'brief')

        assert [a['id'] for a in db.get_articles_needing_viewpoints()] == [article_id]

    def test_ordered_by_relevance(self, seeded_db):
        db = seeded_db
        a = _article(db, url='https://example.com/a')
        b = _article(db, url='https://example.com/b')
        db.save_summary(a, 's', [], [], 7)
        db.save_summary(b, 's', [], [], 9)
        assert [x['id'] for x in db.get_articles_needing_viewpoints()] == [b, a]

    def test_viewpoint_upsert_replaces_pair(self, seeded_db):
        db = seeded_db
        article_id = _article(db)
        persona = db.get_persona_by_slug('drex-deford')
        first = db.save_viewpoint(article_id, persona.id, 'v1', ['a'], 0.5)
        second = db.save_viewpoint(article_id, persona.id, 'v2', ['b'], 1.7)

        assert first == second
        assert _count(db, Viewpoint) == 1
        view = db.get_viewpoints_for_article(article_id)[0]
        assert view.viewpoint_text == 'v2'
        assert view.confidence_score == 1.0

    def test_roundtable_needs_all_analysts(self, seeded_db):
        db = seeded_db
        article_id = _article(db)
        analysts = db.get_personas(kind='analyst')
        for persona in analysts[:2]:
            db.save_viewpoint(article_id, persona.id, f"view of {persona.slug}")
        assert db.get_articles_needing_roundtable() == []

        db.save_viewpoint(article_id, analysts[2].id, 'third view')
        ready = db.get_articles_needing_roundtable()
        assert [a['id'] for a in ready] == [article_id]
        assert set(ready[0]['viewpoints']) == {'bill-russell', 'drex-deford', 'sarah-richardson'}

        roundtable = db.get_persona_by_slug('newsday')
        db.save_viewpoint(article_id, roundtable.id, 'discussion')
        assert db.get_articles_needing_roundtable() == []


class TestTranscripts:
    def test_processed_transcripts_filtered_by_tag(self, seeded_db):
        db = seeded_db
        persona = db.get_persona_by_slug('drex-deford')
        security = db.save_transcript(persona.id, 'vid1', 'text ' * 20)
        leadership = db.save_transcript(persona.id, 'vid2', 'text ' * 20)
        raw = db.save_transcript(persona.id, 'vid3', 'text ' * 20)
        db.mark_transcript_processed(security, [{'quote': 'q1'}], ['cybersecurity'])
        db.mark_transcript_processed(leadership, [{'quote': 'q2'}], ['leadership'])

        assert [t.id for t in db.get_transcripts_for_persona(persona.id, ['CyberSecurity'])] == [security]
        assert {t.id for t in db.get_transcripts_for_persona(persona.id)} == {security, leadership}
        assert raw not in {t.id for t in db.get_transcripts_for_persona(persona.id)}

    def test_resaving_a_video_resets_it_to_raw(self, seeded_db):
        db = seeded_db
        persona = db.get_persona_by_slug('drex-deford')
        transcript_id = db.save_transcript(persona.id, 'vid1', 'text ' * 20)
        db.mark_transcript_processed(transcript_id, [{'quote': 'q'}], ['ai'])
        assert db.save_transcript(persona.id, 'vid1', 'new text ' * 20) == transcript_id
        assert [t.id for t in db.get_raw_transcripts()] == [transcript_id]


class TestRuns:
    def test_second_run_is_refused_while_first_is_processing(self, db):
        run_id = db.start_run('ingestion')
        with pytest.raises(RunInProgressError) as exc:
            db.start_run('ingestion')
        assert exc.value.run_id == run_id

    def test_other_pipelines_are_independent(self, db):
        db.start_run('ingestion')
        assert db.start_run('viewpoint')

    def test_force_and_finished_runs(self, db):
        run_id = db.start_run('ingestion')
        assert db.start_run('ingestion', force=True) != run_id

        other = Database('sqlite://')
        finished = other.start_run('roundtable')
        other.finish_run(finished, 'completed', {'errors': 0})
        assert other.start_run('roundtable')
        runs = {r.run_id: r for r in other.get_recent_runs()}
        assert runs[finished].stats == {'errors': 0}
        assert runs[finished].status == 'completed'

    def test_stale_runs_do_not_block(self, db):
        with db.session_scope() as session:
            session.add(PipelineRun(run_id='old', pipeline=PipelineName.INGESTION, status='processing',
                                    started_at=utcnow() - timedelta(hours=5)))
        assert db.start_run('ingestion', lock_minutes=60)

    def test_unknown_pipeline(self, db):
        with pytest.raises(ValueError):
            db.start_run('nightly')


class TestLogs:
    def test_log_action_and_filter(self, db):
        db.log_action('Agent', 'step', 'warning', {'x': 1}, run_id='r1')
        db.log_action('Agent', 'step', 'success', run_id='r2')
        logs = db.get_recent_logs(status='warning')
        assert len(logs) == 1
        assert logs[0].details == {'x': 1}
        assert len(db.get_recent_logs(run_id='r2')) == 1
