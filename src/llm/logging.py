"""
LLM API call logging system.

Provides context manager and logger class for tracking all LLM API calls,
including prompts, responses, tokens, timing, and errors.
"""

import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from db.models import LLMApiCall, utcnow


class LLMApiCallLogger:
    """
    Logger for LLM API calls.

    Tracks all relevant information about an API call including prompts,
    responses, tokens, timing, and errors.
    """

    def __init__(
        self,
        db,
        call_type: str,
        model: str,
        task_name: Optional[str] = None,
        context_data: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize logger.

        Args:
            db: Database the entry is written to (None disables persistence)
            call_type: Type of API call ('chat_completion')
            model: Model name ('gpt-4o-mini', etc.)
            task_name: Optional task name ('entity_extraction', etc.)
            context_data: Optional metadata for filtering (article_id, persona, etc.)
        """
        self.db = db
        self.call_type = call_type
        self.model = model
        self.task_name = task_name
        self.context_data = context_data or {}

        # Timing
        self.started_at = utcnow()
        self.completed_at = None
        self.duration_ms: Optional[int] = None

        # Prompts
        self.system_prompt: Optional[str] = None
        self.user_prompt: Optional[str] = None
        self.temperature: Optional[float] = None

        # Response
        self.response_raw: Optional[Dict] = None
        self.response_text: Optional[str] = None

        # Tokens
        self.input_tokens: Optional[int] = None
        self.output_tokens: Optional[int] = None
        self.total_tokens: Optional[int] = None

        # Status
        self.success: bool = True
        self.error_message: Optional[str] = None

    def set_prompts(self, system_prompt: Optional[str], user_prompt: str, temperature: Optional[float] = None):
        self.system_prompt = system_prompt
        self.user_prompt = user_prompt
        self.temperature = temperature

    def set_response(self, response):
        """
        Set OpenAI API response and extract tokens.

        Args:
            response: OpenAI API response object (ChatCompletion)
        """
        self.response_raw = response.model_dump() if hasattr(response, 'model_dump') else dict(response)

        if getattr(response, 'usage', None):
            self.input_tokens = response.usage.prompt_tokens
            self.output_tokens = response.usage.completion_tokens
            self.total_tokens = response.usage.total_tokens

    def set_response_text(self, text: str):
        self.response_text = text

    def _finish(self):
        self.completed_at = utcnow()
        self.duration_ms = int((self.completed_at - self.started_at).total_seconds() * 1000)

    def mark_success(self):
        """Mark call as successful and calculate duration."""
        self._finish()
        self.success = True

    def mark_error(self, error_message: str):
        """Mark call as failed with error message."""
        self._finish()
        self.success = False
        self.error_message = error_message

    def save(self):
        """
        Save log entry to database.

        Uses its own session so a failed log write never affects the caller.
        Database locks are retried with exponential backoff; any other
        database error is reported on stderr.
        """
        if self.db is None:
            return

        max_retries = 3
        retry_delay = 0.1  # 100ms

        for attempt in range(max_retries):
            try:
                with self.db.session_scope() as session:
                    session.add(LLMApiCall(
                        call_type=self.call_type,
                        task_name=self.task_name,
                        model=self.model,
                        started_at=self.started_at,
                        completed_at=self.completed_at,
                        duration_ms=self.duration_ms,
                        input_tokens=self.input_tokens,
                        output_tokens=self.output_tokens,
                        total_tokens=self.total_tokens,
                        system_prompt=self.system_prompt,
                        user_prompt=self.user_prompt,
                        temperature=self.temperature,
                        response_text=self.response_text,
                        response_raw=self.response_raw,
                        success=1 if self.success else 0,
                        error_message=self.error_message,
                        context_data=self.context_data if self.context_data else None
                    ))
                return

            except OperationalError:
                # Database locked - retry
                if attempt < max_retries - 1:
                    time.sleep(retry_delay)
                    retry_delay *= 2
                    continue
                print(f"Warning: Failed to save LLM API call log after {max_retries} attempts (database locked)", file=sys.stderr)

            except SQLAlchemyError as e:
                print(f"Warning: Failed to save LLM API call log: {e}", file=sys.stderr)
                return


@contextmanager
def log_llm_api_call(
    db,
    call_type: str,
    model: str,
    task_name: Optional[str] = None,
    context_data: Optional[Dict[str, Any]] = None
):
    """
    Context manager for logging LLM API calls.

    Automatically handles success/error tracking and database persistence.

    Args:
        db: Database the entry is written to (None disables persistence)
        call_type: Type of API call ('chat_completion')
        model: Model name ('gpt-4o-mini', etc.)
        task_name: Optional task name ('analyst_viewpoint', etc.)
        context_data: Optional metadata for filtering

    Yields:
        LLMApiCallLogger instance

    Example:
        >>> with log_llm_api_call(db, 'chat_completion', 'gpt-4o-mini', 'article_summary') as logger:
        ...     logger.set_prompts(system_prompt, user_prompt, 0.5)
        ...     completion = client.chat.completions.create(...)
        ...     logger.set_response(completion)
    """
    logger = LLMApiCallLogger(db, call_type, model, task_name, context_data)

    try:
        yield logger
        logger.mark_success()
    except Exception as e:
        logger.mark_error(str(e))
        raise
    finally:
        logger.save()
