"""Recover the requested paths from whatever shape the translator returned.

Translators are asked for a tree nested exactly like the request, but in
practice they also answer with partially flat keys (``{"a.b.title": ...}``)
or re-group the values under their own dotted paths::

    {"a": {"a.b": {"a.b.title": "Y"}}}

Grouping keys that repeat the enclosing path are stripped while walking,
and any remaining doubled segments are collapsed, but only as far as needed
to land on a path that was actually requested. A doubled leaf segment
(``{"footer": {"footer": ...}}``) is collapsed only when nothing else
matches. Values for paths that were not requested are dropped, and
requested paths missing from the response are left out rather than
filled with the source text.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from .errors import EmptyNormalizationError
from .tree import FlatMap, join_path

logger = logging.getLogger(__name__)


def collapse_repeats(path: str) -> str | None:
    """
    Remove the first immediately repeated block of segments from ``path``.

    ``"a.a.b"`` becomes ``"a.b"`` and ``"a.b.a.b.c"`` becomes ``"a.b.c"``.
    The final (leaf) segment never takes part in a collapse.

    Returns:
        The collapsed path, or ``None`` if there is nothing to collapse
    """
    parts = path.split(".")
    for start in range(len(parts)):
        for width in range(1, (len(parts) - start) // 2 + 1):
            end = start + 2 * width
            if end >= len(parts):
                break
            if parts[start : start + width] == parts[start + width : end]:
                return ".".join(parts[: start + width] + parts[end:])
    return None


def _candidates(path: str) -> Iterator[str]:
    while path is not None:
        yield path
        path = collapse_repeats(path)


def _drop_trailing_repeat(path: str) -> str | None:
    """``"footer.footer"`` -> ``"footer"``, ``"a.b.a.b"`` -> ``"a.b"``."""
    parts = path.split(".")
    for width in range(1, len(parts) // 2 + 1):
        if parts[-2 * width : -width] == parts[-width:]:
            return ".".join(parts[:-width])
    return None


def _resolve(path: str, requested: Mapping) -> str | None:
    for candidate in _candidates(path):
        if candidate in requested:
            return candidate

    # Last resort: a leaf grouped under a key repeating its own name
    shorter = _drop_trailing_repeat(path)
    if shorter is not None:
        return _resolve(shorter, requested)
    return None


def _walk(node: Mapping, prefix: str, found: list[tuple[str, object]]) -> None:
    for key, value in node.items():
        key = str(key)
        # Grouping key repeating the path it sits under
        if prefix and key.startswith(prefix + "."):
            key = key[len(prefix) + 1 :]
        path = join_path(prefix, key)

        if isinstance(value, dict):
            _walk(value, path, found)
        else:
            found.append((path, value))


def _root_keys(requested: Mapping) -> list[str]:
    roots: dict[str, None] = {}
    for path in requested:
        roots.setdefault(path.split(".", 1)[0], None)
    return list(roots)


def _collect(response: Mapping, root: str, requested: Mapping) -> list[tuple[str, object]]:
    found: list[tuple[str, object]] = []
    value = response.get(root)

    if isinstance(value, dict):
        _walk(value, root, found)
    elif value is not None and root in requested:
        found.append((root, value))

    if found:
        return found

    # Partially flat response: {"root.sub.leaf": ...} at the top level
    for key, value in response.items():
        if not str(key).startswith(root + "."):
            continue
        if isinstance(value, dict):
            _walk(value, str(key), found)
        else:
            found.append((str(key), value))
    return found


def normalize_response(response, requested: Mapping) -> FlatMap:
    """
    Map a translator response back onto the flat paths of ``requested``.

    Args:
        response: Parsed translator output; any JSON shape is tolerated
        requested: The flat chunk that was sent for translation

    Returns:
        Flat map containing only requested paths with string values, in
        the order they were requested

    Raises:
        EmptyNormalizationError: If ``requested`` is non-empty and no
            requested path could be recovered
    """
    if not requested:
        return {}
    if not isinstance(response, dict):
        logger.warning("Translator response is a %s, not an object", type(response).__name__)
        raise EmptyNormalizationError(len(requested))

    recovered: FlatMap = {}
    for root in _root_keys(requested):
        for raw_path, value in _collect(response, root, requested):
            if not isinstance(value, str):
                logger.debug("Dropping non-string value at '%s'", raw_path)
                continue
            path = _resolve(raw_path, requested)
            if path is None:
                logger.debug("Dropping unrequested path '%s'", raw_path)
                continue
            if path in recovered:
                logger.debug("Ignoring duplicate value for '%s'", path)
                continue
            recovered[path] = value

    missing = len(requested) - len(recovered)
    if missing:
        logger.info("Translator omitted %d of %d requested paths", missing, len(requested))
    if not recovered:
        raise EmptyNormalizationError(len(requested))

    return {path: recovered[path] for path in requested if path in recovered}
