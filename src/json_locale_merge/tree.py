"""Conversion between nested locale trees and flat maps of dotted paths.

A *tree* is a ``dict`` whose values are strings, ``None`` (a deletion
tombstone) or nested trees. A *flat map* maps dot-joined paths to leaf
values. ``materialize(flatten(tree)) == tree`` for every tree without
empty subtrees, tombstones or dotted keys; empty subtrees vanish when
flattened, and keys containing ``.`` cannot be told apart from nesting.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Union

from .errors import ConflictingPathError, InvalidTreeError

Leaf = Union[str, None]
Tree = dict  # dict[str, Leaf | Tree]
FlatMap = dict  # dict[str, Leaf]


def join_path(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def flatten(tree: Mapping, prefix: str = "") -> FlatMap:
    """
    Flatten a nested tree into ``{dotted.path: leaf}`` in depth-first order.

    Args:
        tree: The nested tree to flatten
        prefix: Path prefix applied to every emitted key

    Returns:
        A flat map. Empty nested trees produce no entries.

    Raises:
        InvalidTreeError: If a value is a list, number, boolean or any other
            non-string scalar
    """
    flat: FlatMap = {}
    for key, value in tree.items():
        path = join_path(prefix, key)
        if isinstance(value, dict):
            flat.update(flatten(value, path))
        elif value is None or isinstance(value, str):
            flat[path] = value
        else:
            raise InvalidTreeError(path, value)
    return flat


def _set_path(tree: Tree, path: str, value: str) -> None:
    parts = path.split(".")
    current = tree
    for i, part in enumerate(parts[:-1]):
        node = current.get(part)
        if node is None:
            node = current[part] = {}
        elif not isinstance(node, dict):
            raise ConflictingPathError(path, ".".join(parts[: i + 1]))
        current = node

    last = parts[-1]
    existing = current.get(last)
    if isinstance(existing, dict) and existing:
        raise ConflictingPathError(path, path)
    current[last] = value


def _delete_path(tree: Tree, parts: list[str]) -> bool:
    """Remove the value at ``parts``, pruning parents the removal left empty."""
    key = parts[0]
    if key not in tree:
        return False
    if len(parts) == 1:
        del tree[key]
        return True

    child = tree[key]
    if not isinstance(child, dict):
        return False
    removed = _delete_path(child, parts[1:])
    if removed and not child:
        del tree[key]
    return removed


def materialize(flat: Mapping) -> Tree:
    """
    Rebuild a nested tree from a flat map.

    Tombstoned paths (``None`` values) are omitted from the result.

    Raises:
        ConflictingPathError: If one path uses another path's leaf as an
            internal node (``{"a": "x", "a.b": "y"}``)
    """
    tree: Tree = {}
    for path, value in flat.items():
        if value is None:
            continue
        _set_path(tree, path, value)
    return tree


def overlay(tree: Mapping, values: Mapping, deletions: Iterable[str] = ()) -> Tree:
    """
    Return a copy of ``tree`` with ``deletions`` removed and ``values`` set.

    Deletions are applied first, so a leaf being replaced by a subtree (or the
    other way around) merges cleanly when the old shape is tombstoned. Parents
    emptied by a deletion are pruned. The input tree is never modified.

    Raises:
        ConflictingPathError: If a value would pass through an existing leaf
            or replace a non-empty subtree
    """
    result = copy.deepcopy(dict(tree))
    for path in deletions:
        _delete_path(result, path.split("."))
    for path, value in values.items():
        if value is None:
            _delete_path(result, path.split("."))
        else:
            _set_path(result, path, value)
    return result
