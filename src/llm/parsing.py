"""
Extraction of JSON payloads from free-form model responses.

Models often wrap the requested JSON in prose or markdown fences. The
payload is the first balanced {...} block that parses as a JSON object;
everything around it is ignored.
"""

import json
from typing import Any, Dict, Iterator, Optional, Tuple


def _balanced_blocks(text: str) -> Iterator[Tuple[int, int]]:
    """Yield (start, end) spans of balanced brace blocks, honoring JSON strings."""
    start = text.find('{')
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = None

        for i in range(start, len(text)):
            char = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue

            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    end = i + 1
                    break

        if end is not None:
            yield start, end
        start = text.find('{', start + 1)


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Find the first JSON object embedded in a text.

    Args:
        text: Raw model response

    Returns:
        Parsed object, or None if the text holds no parseable JSON object

    Example:
        >>> extract_json_object('Sure! {"summary": "x", "tags": ["AI"]} Hope this helps.')
        {'summary': 'x', 'tags': ['AI']}
        >>> extract_json_object('I cannot help with that.') is None
        True
    """
    if not text:
        return None

    for start, end in _balanced_blocks(text):
        try:
            payload = json.loads(text[start:end])
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload

    return None
