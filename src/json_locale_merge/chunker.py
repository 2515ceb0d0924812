"""Partition a flat change set into request-sized chunks."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field

from .tree import FlatMap

logger = logging.getLogger(__name__)

SizeFunction = Callable[[str, object], int]


def serialized_size(path: str, value) -> int:
    """Characters ``{path: value}`` occupies when sent as indented JSON."""
    return len(json.dumps({path: value}, ensure_ascii=False, indent=2))


@dataclass
class Chunk:
    """An ordered, path-disjoint slice of the change set."""

    index: int
    entries: FlatMap = field(default_factory=dict)
    size: int = 0

    @property
    def chunk_id(self) -> str:
        return f"chunk_{self.index + 1}"

    def __len__(self) -> int:
        return len(self.entries)


def split_into_chunks(
    flat: Mapping,
    budget: int,
    size_of: SizeFunction | None = None,
) -> list[Chunk]:
    """
    Greedily pack ``flat`` into chunks whose serialized size stays within ``budget``.

    Entries keep their input order and are never split or duplicated. An
    entry that is larger than the budget on its own gets a chunk to itself.

    Args:
        flat: Ordered flat map to partition
        budget: Maximum characters per chunk
        size_of: Size function for one entry, defaults to ``serialized_size``

    Returns:
        List of chunks; empty only when ``flat`` is empty
    """
    if budget <= 0:
        raise ValueError(f"Chunk budget must be positive, got {budget}")
    size_of = size_of or serialized_size

    chunks: list[Chunk] = []
    current = Chunk(index=0)
    for path, value in flat.items():
        entry_size = size_of(path, value)
        if current.size + entry_size > budget and current.entries:
            chunks.append(current)
            current = Chunk(index=len(chunks))
        current.entries[path] = value
        current.size += entry_size

    if current.entries:
        chunks.append(current)

    for chunk in chunks:
        logger.debug("%s: %d keys, %d chars", chunk.chunk_id, len(chunk), chunk.size)
    logger.info("Split %d keys into %d chunks (budget %d chars)", len(flat), len(chunks), budget)
    return chunks


def split_into_batches(flat: Mapping, batch_size: int) -> Iterator[Chunk]:
    """Yield fixed-size batches of at most ``batch_size`` keys, in order."""
    if batch_size <= 0:
        raise ValueError(f"Batch size must be positive, got {batch_size}")

    current = Chunk(index=0)
    for path, value in flat.items():
        current.entries[path] = value
        current.size += serialized_size(path, value)
        if len(current) >= batch_size:
            yield current
            current = Chunk(index=current.index + 1)
    if current.entries:
        yield current
