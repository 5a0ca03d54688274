"""Text generation: OpenAI client, call logging and prompt tasks."""
