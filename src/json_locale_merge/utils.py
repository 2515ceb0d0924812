"""Utility functions for json-locale-merge."""

from __future__ import annotations

import json
from pathlib import Path

import pycountry


def get_language_name(code: str) -> str:
    """
    Get the full language name from a locale code.

    Region suffixes are dropped (``pt-BR`` -> ``Portuguese``), except for the
    Chinese variants, which map to ``Chinese (Simplified)`` and
    ``Chinese (Traditional)``.

    Args:
        code: ISO 639-1 or 639-3 language code, optionally with a region

    Returns:
        Full language name (e.g., 'German', 'French', 'Spanish')

    Raises:
        ValueError: If the language code is not recognized
    """
    # Handle some common special cases
    special_cases = {
        "zh": "Chinese",
        "zh-cn": "Chinese (Simplified)",
        "zh-tw": "Chinese (Traditional)",
    }

    code_lower = code.lower().replace("_", "-")
    if code_lower in special_cases:
        return special_cases[code_lower]

    language_code = code_lower.split("-", 1)[0]

    # Try to find the language using pycountry
    language = pycountry.languages.get(alpha_2=language_code)
    if language:
        return language.name

    # Try alpha_3 code as fallback
    language = pycountry.languages.get(alpha_3=language_code)
    if language:
        return language.name

    raise ValueError(f"Unknown language code: {code}")


def load_context(path: Path | None) -> str:
    """
    Load translation context from a JSON file.

    The context file can have the following structure::

        {
            "instructions": "General instructions..." or ["one", "per", "line"],
            "glossary": {"term": "definition", ...}
                        or [{"term": "...", "definition": "..."}, ...]
        }

    Args:
        path: Path to the context JSON file, or None for no context

    Returns:
        Formatted context string appended to the translator's system prompt

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: If the file does not hold a JSON object
    """
    if path is None:
        return ""

    if not path.exists():
        raise FileNotFoundError(f"Context file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Context file must contain a JSON object: {path}")

    parts = []

    instructions = data.get("instructions")
    if isinstance(instructions, list):
        instructions = "\n".join(str(line) for line in instructions)
    if instructions:
        parts.append("**Contextual Information**:")
        parts.append(instructions)

    glossary = data.get("glossary")
    if isinstance(glossary, dict):
        glossary = [{"term": k, "definition": v} for k, v in glossary.items()]
    if isinstance(glossary, list) and glossary:
        parts.append("\n**Glossary**:")
        for entry in glossary:
            if isinstance(entry, dict) and "term" in entry:
                parts.append(f'- "{entry["term"]}" refers to {entry.get("definition", "")}')

    return "\n".join(parts)
