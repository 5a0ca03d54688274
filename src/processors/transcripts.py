"""
Show transcripts used to ground the analysts' voices.

Raw transcripts are stored per persona. Processing pulls a handful of short
verbatim excerpts and the episode's topic tags out of each transcript; the
viewpoint stage later quotes those excerpts back to the model.
"""

from dataclasses import dataclass
from typing import Optional

from domain.personas import UnknownPersonaError
from llm.openai_client import GenerationError, structured_output


AGENT_NAME = 'HIT Transcript Agent'

EXCERPT_TEMPERATURE = 0.3
MAX_EXCERPTS = 8

# Shorter transcripts carry no usable voice material
MIN_TRANSCRIPT_CHARS = 50


@dataclass
class TranscriptRunSummary:
    found: int = 0
    processed: int = 0
    warnings: int = 0


def add_transcript(db, persona_slug: str, video_id: str, raw_transcript: str,
                   video_title: Optional[str] = None, video_url: Optional[str] = None,
                   published_date=None) -> int:
    """
    Store a raw transcript for a persona.

    Returns:
        Transcript ID

    Raises:
        UnknownPersonaError: If no persona has that slug
        ValueError: If the transcript is too short to be useful
    """
    persona = db.get_persona_by_slug(persona_slug)
    if persona is None:
        raise UnknownPersonaError(persona_slug)

    text = ' '.join((raw_transcript or '').split())
    if len(text) <= MIN_TRANSCRIPT_CHARS:
        raise ValueError(f"Transcript for {video_id} is too short ({len(text)} characters)")

    return db.save_transcript(
        persona_id=persona.id,
        video_id=video_id,
        raw_transcript=text,
        video_title=video_title,
        video_url=video_url or f"https://www.youtube.com/watch?v={video_id}",
        published_date=published_date,
    )


def process_transcript(db, generator, transcript, persona_name: str) -> bool:
    """
    Extract excerpts and topic tags from one raw transcript.

    A failed or unusable response marks the transcript 'error' and logs a
    warning instead of raising.

    Returns:
        True if the transcript was processed
    """
    data = {
        'persona_name': persona_name,
        'video_title': transcript.video_title,
        'transcript': transcript.raw_transcript,
        'max_excerpts': MAX_EXCERPTS,
    }

    try:
        result = structured_output(
            generator,
            'transcript_excerpts',
            data,
            temperature=EXCERPT_TEMPERATURE,
            context_data={'transcript_id': transcript.id, 'video_id': transcript.video_id}
        )
    except GenerationError as e:
        db.mark_transcript_error(transcript.id)
        db.log_action(AGENT_NAME, 'transcript_processing_failed', 'warning',
                      {'video_id': transcript.video_id, 'error': str(e)})
        return False

    if not result.excerpts:
        db.mark_transcript_error(transcript.id)
        db.log_action(AGENT_NAME, 'transcript_processing_failed', 'warning',
                      {'video_id': transcript.video_id, 'error': 'no excerpts returned'})
        return False

    excerpts = [excerpt.model_dump() for excerpt in result.excerpts[:MAX_EXCERPTS]]
    db.mark_transcript_processed(transcript.id, excerpts, result.topic_tags)
    db.log_action(AGENT_NAME, 'transcript_processed', 'success',
                  {'video_id': transcript.video_id, 'excerpts': len(excerpts), 'topic_tags': result.topic_tags})
    return True


def process_pending_transcripts(db, generator, limit: int = 20) -> TranscriptRunSummary:
    """Process every raw transcript (up to limit), oldest first."""
    summary = TranscriptRunSummary()
    personas = {}

    for transcript in db.get_raw_transcripts(limit=limit):
        summary.found += 1

        if transcript.persona_id not in personas:
            persona = next((p for p in db.get_personas(enabled_only=False) if p.id == transcript.persona_id), None)
            personas[transcript.persona_id] = persona.name if persona else 'the host'

        if process_transcript(db, generator, transcript, personas[transcript.persona_id]):
            summary.processed += 1
            print(f"  ✓ Processed transcript {transcript.video_id}")
        else:
            summary.warnings += 1
            print(f"  ✗ Could not process transcript {transcript.video_id}")

    return summary
