"""Three-way diff deciding which base strings need (re)translation."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .tree import FlatMap, flatten

logger = logging.getLogger(__name__)


def _needs_translation(path: str, value: str, target: FlatMap, snapshot: FlatMap | None) -> bool:
    if path not in target:
        return True

    existing = target[path]
    if existing is None or existing == "":
        return True

    # Upstream edit since the last committed run
    base_changed = snapshot is not None and snapshot.get(path) != value
    if base_changed:
        return True

    # Still holding the source text. When the snapshot shows this exact text
    # was already synced, an identical translation was accepted on purpose.
    synced = snapshot is not None and snapshot.get(path) == value
    return existing == value and not synced


def compute_change_set(
    base: Mapping,
    target: Mapping | None,
    snapshot: Mapping | None = None,
) -> FlatMap:
    """
    Compute the flat set of paths that must be translated or removed.

    A base path is included (with the base text) when the target lacks it,
    holds an empty string, still holds the untranslated base text, or when
    the snapshot shows the base text changed since the last committed run.
    Target paths missing from the base are included with ``None``.

    Args:
        base: Current base-language tree
        target: Current target-language tree (``None`` or ``{}`` if new)
        snapshot: Base tree as of the last commit, or ``None`` on first run

    Returns:
        Flat map ordered by base traversal order, followed by deletions in
        target traversal order. Each path appears at most once.
    """
    base_flat = flatten(base)
    target_flat = flatten(target or {})
    snapshot_flat = flatten(snapshot) if snapshot is not None else None

    changes: FlatMap = {}
    for path, value in base_flat.items():
        if value is None:
            continue
        if _needs_translation(path, value, target_flat, snapshot_flat):
            changes[path] = value

    translated = len(changes)
    for path in target_flat:
        if path not in base_flat:
            changes[path] = None

    logger.info(
        "Change set: %d to translate, %d to delete (base has %d strings)",
        translated,
        len(changes) - translated,
        len(base_flat),
    )
    return changes


def split_deletions(changes: Mapping) -> tuple[FlatMap, list[str]]:
    """Partition a change set into translatable entries and tombstoned paths."""
    pending: FlatMap = {}
    deletions: list[str] = []
    for path, value in changes.items():
        if value is None:
            deletions.append(path)
        else:
            pending[path] = value
    return pending, deletions
