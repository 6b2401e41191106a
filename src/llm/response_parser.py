"""Response parsing utilities for agent output.

Extracts fenced blocks, JSON objects, and comparison keys from raw
agent responses. Every helper returns None or an empty result instead of
raising, so callers can chain them as fallbacks.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional

_ANY_FENCE = re.compile(r"```([\w+-]*)[ \t]*\n?(.*?)```", re.DOTALL)


def extract_code_blocks(text: str, language: Optional[str] = None) -> list[str]:
    """Extract fenced code blocks from agent output.

    Args:
        text: Raw agent response.
        language: If specified, only return blocks with this language tag.

    Returns:
        List of code block contents (without fences).
    """
    if language:
        pattern = rf"```{re.escape(language)}\s*\n(.*?)```"
        matches = re.findall(pattern, text, re.DOTALL)
    else:
        matches = [body for _, body in _ANY_FENCE.findall(text)]
    return [m.strip() for m in matches]


def fenced_blocks(text: str) -> list[str]:
    """Return the contents of every fenced block, ``json``-tagged blocks first."""
    blocks = [(lang.lower(), body.strip()) for lang, body in _ANY_FENCE.findall(text)]
    return [body for lang, body in blocks if lang == "json"] + [body for lang, body in blocks if lang != "json"]


def load_json_object(text: str) -> Optional[dict[str, Any]]:
    """Parse text as JSON, returning it only if it is an object."""
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_json_block(text: str) -> Optional[dict[str, Any]]:
    """Extract and parse the first JSON block from agent output."""
    blocks = extract_code_blocks(text, "json")
    if blocks:
        parsed = load_json_object(blocks[0])
        if parsed is not None:
            return parsed

    # Try parsing the whole response as JSON
    return load_json_object(text.strip())


def find_json_span(text: str, key: str) -> Optional[str]:
    """Find the widest ``{ ... }`` span that mentions ``"key"``.

    Greedy on both sides: from the first opening brace in the text to the
    last closing brace, provided the key sits between them.
    """
    marker = f'"{key}"'
    key_pos = text.find(marker)
    if key_pos < 0:
        return None
    start = text.find("{", 0, key_pos)
    end = text.rfind("}")
    if start < 0 or end < key_pos:
        return None
    return text[start:end + 1]


def normalize_issue_text(text: str) -> str:
    """Reduce issue text to lowercase alphanumerics for fuzzy comparison."""
    return re.sub(r"[^a-z0-9]", "", text.lower())
