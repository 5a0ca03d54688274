"""
OpenAI text generation with JSON-constrained task prompts.

Each task is described by three files under prompts/:

    prompts/{task_name}_system_prompt.md.jinja  - System prompt template
    prompts/{task_name}_user_prompt.md.jinja    - User prompt template
    prompts/{task_name}.py                      - Pydantic schema with 'StructuredOutput' class

The model is asked for a JSON object in plain text. The first JSON object in
the response is validated against the task schema; prose around it is ignored.
"""

import importlib.util
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateNotFound
from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from llm.logging import log_llm_api_call
from llm.parsing import extract_json_object


class GenerationError(Exception):
    """The text-generation call failed (API error, timeout, missing credentials)."""


class StructuredOutputError(GenerationError):
    """The response held no JSON object, or the object did not match the task schema."""


# Setup Jinja2 environment
PROMPTS_DIR = Path(__file__).parent / 'prompts'
jinja_env = Environment(
    loader=FileSystemLoader(PROMPTS_DIR),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True
)


class TextGenerator:
    """
    Single text-generation capability backed by the OpenAI chat API.

    Every call is recorded in the llm_api_calls table of the given database.
    """

    def __init__(
        self,
        db=None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None
    ):
        """
        Initialize the OpenAI client.

        Args:
            db: Database used for call logging (None disables it)
            api_key: OpenAI API key (defaults to OPENAI_API_KEY from settings)
            model: Model name (defaults to OPENAI_MODEL)
            base_url: Alternative API endpoint (defaults to OPENAI_BASE_URL)
            timeout: Per-request timeout in seconds (defaults to OPENAI_TIMEOUT)
            max_retries: Client retries on transient errors (defaults to OPENAI_MAX_RETRIES)

        Raises:
            GenerationError: If the client cannot be created (e.g. no API key)
        """
        from settings import OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL, OPENAI_MAX_RETRIES, OPENAI_TIMEOUT

        self.db = db
        self.model = model or OPENAI_MODEL

        try:
            self.client = OpenAI(
                api_key=api_key or OPENAI_API_KEY,
                base_url=base_url or OPENAI_BASE_URL,
                max_retries=OPENAI_MAX_RETRIES if max_retries is None else max_retries,
                timeout=timeout or OPENAI_TIMEOUT
            )
        except OpenAIError as e:
            raise GenerationError(f"Could not create OpenAI client: {e}") from e

    def generate(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        temperature: float = 0.7,
        task_name: Optional[str] = None,
        context_data: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Generate text for a prompt.

        Args:
            system_prompt: Optional system prompt
            user_prompt: User prompt
            temperature: Sampling temperature
            task_name: Task name recorded in the call log
            context_data: Metadata recorded in the call log (article_id, persona, ...)

        Returns:
            The response text

        Raises:
            GenerationError: If the API call fails or times out
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        try:
            with log_llm_api_call(self.db, 'chat_completion', self.model, task_name, context_data) as logger:
                logger.set_prompts(system_prompt, user_prompt, temperature)

                completion = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=temperature
                )

                logger.set_response(completion)
                text = completion.choices[0].message.content or ''
                logger.set_response_text(text)
                return text

        except OpenAIError as e:
            raise GenerationError(f"{task_name or 'generation'} call failed: {e}") from e


def _load_pydantic_schema(task_name: str) -> type[BaseModel]:
    """
    Dynamically load Pydantic schema from prompts/{task_name}.py.

    Args:
        task_name: Name of the task (e.g., 'article_summary')

    Returns:
        Pydantic BaseModel class named 'StructuredOutput'

    Raises:
        FileNotFoundError: If schema file doesn't exist
        ImportError: If StructuredOutput class not found in module
    """
    module_name = f"llm.prompts.{task_name}"
    if module_name in sys.modules:
        module = sys.modules[module_name]
    else:
        schema_file = PROMPTS_DIR / f"{task_name}.py"

        if not schema_file.exists():
            raise FileNotFoundError(f"Schema file not found: {schema_file}")

        spec = importlib.util.spec_from_file_location(module_name, schema_file)
        if spec is None or spec.loader is None:
            raise ImportError(f"Could not load module from {schema_file}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)

    if not hasattr(module, 'StructuredOutput'):
        raise ImportError(f"'StructuredOutput' class not found in {module_name}")

    schema_class = getattr(module, 'StructuredOutput')

    if not issubclass(schema_class, BaseModel):
        raise TypeError("'StructuredOutput' must be a Pydantic BaseModel subclass")

    return schema_class


def render_prompts(task_name: str, data: Dict[str, Any]) -> tuple[str, str]:
    """
    Render system and user Jinja2 templates with provided data.

    Args:
        task_name: Name of the task (e.g., 'entity_extraction')
        data: Dictionary with variables to render in templates

    Returns:
        Tuple of (system_prompt, user_prompt) rendered strings

    Raises:
        FileNotFoundError: If template files don't exist
    """
    system_template_name = f"{task_name}_system_prompt.md.jinja"
    user_template_name = f"{task_name}_user_prompt.md.jinja"

    try:
        system_prompt = jinja_env.get_template(system_template_name).render(**data)
    except TemplateNotFound:
        raise FileNotFoundError(f"System template not found: {PROMPTS_DIR / system_template_name}")

    try:
        user_prompt = jinja_env.get_template(user_template_name).render(**data)
    except TemplateNotFound:
        raise FileNotFoundError(f"User template not found: {PROMPTS_DIR / user_template_name}")

    return system_prompt, user_prompt


def structured_output(
    generator,
    task_name: str,
    data: Dict[str, Any],
    temperature: float = 0.7,
    context_data: Optional[Dict[str, Any]] = None
) -> BaseModel:
    """
    Run a task prompt and validate the JSON object in the response.

    Args:
        generator: Object with a TextGenerator-compatible generate() method
        task_name: Name of the task (selects templates and schema)
        data: Dictionary with variables for template rendering
        temperature: Sampling temperature
        context_data: Metadata recorded in the call log

    Returns:
        Pydantic model instance with the parsed output

    Raises:
        GenerationError: If the call itself fails
        StructuredOutputError: If the response holds no valid JSON object

    Example:
        >>> data = {'title': 'Epic launches AI tools', 'content': '...'}
        >>> result = structured_output(generator, 'article_summary', data, temperature=0.5)
        >>> result.relevance_score
        7
    """
    schema_class = _load_pydantic_schema(task_name)
    system_prompt, user_prompt = render_prompts(task_name, data)

    text = generator.generate(
        system_prompt,
        user_prompt,
        temperature=temperature,
        task_name=task_name,
        context_data=context_data
    )

    payload = extract_json_object(text)
    if payload is None:
        raise StructuredOutputError(f"No JSON object found in {task_name} response")

    try:
        return schema_class.model_validate(payload)
    except ValidationError as e:
        raise StructuredOutputError(f"Invalid {task_name} response: {e}") from e
    except (TypeError, ValueError, ArithmeticError) as e:
        # Raised directly from field validators without a ValidationError wrapper
        raise StructuredOutputError(f"Unreadable {task_name} response: {type(e).__name__}: {e}") from e
