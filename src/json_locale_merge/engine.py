"""Run a single base/target merge: diff, chunk, translate, normalize, merge.

The engine owns one run at a time::

    IDLE -> COMPUTING -> CHUNKING -> (TRANSLATING -> NORMALIZING -> MERGING)*
         -> AWAITING_DECISION -> COMMITTED | CANCELLED

A run whose every chunk was rejected ends in FAILED instead.

Chunk failures are local: they are logged, counted and the loop moves on.
Nothing is written to disk until ``commit()`` (or ``finish()`` with a
confirming presenter) is called.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from .changeset import compute_change_set, split_deletions
from .chunker import Chunk, split_into_batches, split_into_chunks
from .errors import ConflictingPathError, EmptyNormalizationError, NoChangesError, RunError
from .normalizer import normalize_response
from .tree import FlatMap, Tree, materialize, overlay

logger = logging.getLogger(__name__)

MODES = ("incremental", "bulk")


class RunState(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    CHUNKING = "chunking"
    TRANSLATING = "translating"
    NORMALIZING = "normalizing"
    MERGING = "merging"
    AWAITING_DECISION = "awaiting_decision"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    # Every chunk was rejected and there is nothing to review
    FAILED = "failed"


_RESTARTABLE = (RunState.IDLE, RunState.COMMITTED, RunState.CANCELLED, RunState.FAILED)


class ChunkStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SKIPPED = "skipped"


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            self.input_tokens + other.input_tokens,
            self.output_tokens + other.output_tokens,
        )

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class TranslationResult:
    translated: object
    usage: TokenUsage = field(default_factory=TokenUsage)


class Translator(Protocol):
    """Anything that can translate a tree of strings into a target language."""

    async def translate(self, tree: Tree, target_language: str) -> TranslationResult:
        ...


class DiffPresenter(Protocol):
    """Shows merge progress and asks for the final commit decision."""

    def present(self, original: Tree, updated: Tree, label: str) -> None:
        ...

    def confirm(self, original: Tree, updated: Tree) -> bool:
        ...


@dataclass
class ChunkOutcome:
    chunk_id: str
    keys: int
    status: ChunkStatus
    translated: int = 0
    usage: TokenUsage = field(default_factory=TokenUsage)
    error: str | None = None


@dataclass
class RunSummary:
    outcomes: list[ChunkOutcome] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    deletions: int = 0
    cancelled: bool = False
    state: RunState = RunState.IDLE

    def _count(self, status: ChunkStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def total_chunks(self) -> int:
        return len(self.outcomes)

    @property
    def accepted(self) -> int:
        return self._count(ChunkStatus.ACCEPTED)

    @property
    def rejected(self) -> int:
        return self._count(ChunkStatus.REJECTED)

    @property
    def skipped(self) -> int:
        return self._count(ChunkStatus.SKIPPED)

    @property
    def translated_keys(self) -> int:
        return sum(outcome.translated for outcome in self.outcomes)

    def record(self, outcome: ChunkOutcome) -> None:
        self.outcomes.append(outcome)
        self.usage = self.usage + outcome.usage

    def describe(self) -> str:
        lines = [
            "Translation Summary:",
            f"- Total chunks: {self.total_chunks}",
            f"- Accepted chunks: {self.accepted}",
            f"- Rejected chunks: {self.rejected}",
        ]
        if self.skipped:
            lines.append(f"- Skipped chunks (cancelled): {self.skipped}")
        lines.append(f"- Keys translated: {self.translated_keys}")
        if self.deletions:
            lines.append(f"- Keys to delete: {self.deletions}")
        lines.append(
            f"- Total tokens used: Input: {self.usage.input_tokens}, "
            f"Output: {self.usage.output_tokens}"
        )
        return "\n".join(lines)


class AccumulatorState:
    """
    Every translation verified so far in one run, as a flat map.

    Each path is written at most once per run. Leaves are kept in
    ``values``; tombstoned paths in ``deletions`` are removed when the
    state is materialized over the target tree.
    """

    def __init__(self) -> None:
        self._values: FlatMap = {}
        self._deletions: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._values) + len(self._deletions)

    def __contains__(self, path: str) -> bool:
        return path in self._values or path in self._deletions

    def __eq__(self, other) -> bool:
        if not isinstance(other, AccumulatorState):
            return NotImplemented
        return self._values == other._values and set(self._deletions) == set(other._deletions)

    @property
    def values(self) -> FlatMap:
        return dict(self._values)

    @property
    def deletions(self) -> list[str]:
        return list(self._deletions)

    def copy(self) -> AccumulatorState:
        clone = AccumulatorState()
        clone._values = dict(self._values)
        clone._deletions = dict(self._deletions)
        return clone

    def merge(self, flat: Mapping) -> None:
        """Union ``flat`` into the state; ``None`` values record deletions."""
        already = [path for path in flat if path in self]
        if already:
            raise ValueError(f"Paths already merged in this run: {', '.join(already)}")

        for path, value in flat.items():
            if value is None:
                self._deletions[path] = None
            else:
                self._values[path] = value

    def as_flat(self) -> FlatMap:
        flat = dict(self._values)
        flat.update(self._deletions)
        return flat

    def materialize(self, target: Mapping) -> Tree:
        return overlay(target, self._values, self._deletions)


class MergeEngine:
    """
    Sequence one translation run and hold its result until a decision is made.

    Args:
        translator: Translator collaborator
        presenter: Optional diff presenter for incremental previews and the
            final confirmation
        target_language: Language name handed to the translator
        chunk_size: Character budget per chunk (incremental mode)
        batch_size: Keys per batch (bulk mode)
        parallel: Maximum translator calls in flight (bulk mode)
        mode: ``"incremental"`` or ``"bulk"``
        size_of: Override for the per-entry size function used by the chunker
    """

    def __init__(
        self,
        translator: Translator,
        presenter: DiffPresenter | None = None,
        *,
        target_language: str,
        chunk_size: int = 3000,
        batch_size: int = 50,
        parallel: int = 1,
        mode: str = "incremental",
        size_of: Callable[[str, object], int] | None = None,
    ) -> None:
        if mode not in MODES:
            raise ValueError(f"Invalid mode: '{mode}'. Valid options are: {', '.join(MODES)}")
        self._translator = translator
        self._presenter = presenter
        self.target_language = target_language
        self.chunk_size = chunk_size
        self.batch_size = batch_size
        self.parallel = max(1, parallel)
        self.mode = mode
        self._size_of = size_of

        self._state = RunState.IDLE
        self._cancel_requested = False
        self._target: Tree = {}
        self._accumulator: AccumulatorState | None = None
        self.summary: RunSummary | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def accumulator(self) -> AccumulatorState | None:
        return self._accumulator

    @property
    def original_target(self) -> Tree:
        return copy.deepcopy(self._target)

    def cancel(self) -> None:
        """Stop before the next chunk; a chunk already in flight finishes."""
        if not self._cancel_requested:
            logger.info("Cancellation requested")
        self._cancel_requested = True

    def _reset(self) -> None:
        self._state = RunState.IDLE
        self._accumulator = None
        self._cancel_requested = False

    async def run(self, base: Mapping, target: Mapping | None, snapshot: Mapping | None = None) -> RunSummary:
        """
        Translate everything that changed between ``base`` and ``target``.

        Raises:
            NoChangesError: If base and target are already in sync
            RunError: If the engine is not idle
            InvalidTreeError: If an input tree holds unsupported values
        """
        if self._state not in _RESTARTABLE:
            raise RunError(f"Cannot start a run while {self._state.value}")

        self._cancel_requested = False
        self._target = copy.deepcopy(dict(target or {}))
        self._state = RunState.COMPUTING
        try:
            changes = compute_change_set(base, self._target, snapshot)
        except Exception:
            self._reset()
            raise
        if not changes:
            self._reset()
            raise NoChangesError("No changes detected, no translation needed.")

        pending, deletions = split_deletions(changes)
        self._accumulator = AccumulatorState()
        self._accumulator.merge({path: None for path in deletions})

        self._state = RunState.CHUNKING
        try:
            if self.mode == "incremental":
                chunks = split_into_chunks(pending, self.chunk_size, self._size_of)
            else:
                chunks = list(split_into_batches(pending, self.batch_size))
        except Exception:
            self._reset()
            raise

        summary = RunSummary(deletions=len(deletions))
        self.summary = summary
        try:
            if self.mode == "incremental":
                await self._run_incremental(chunks, summary)
            else:
                await self._run_bulk(chunks, summary)
        except BaseException:
            # Task cancellation or Ctrl-C: keep what already merged, then propagate
            logger.warning("Run interrupted while %s", self._state.value)
            summary.cancelled = True
            self._conclude(summary, preview=False)
            raise

        self._conclude(summary)
        logger.info(
            "Run finished: %d accepted, %d rejected, %d skipped",
            summary.accepted,
            summary.rejected,
            summary.skipped,
        )
        return summary

    def _conclude(self, summary: RunSummary, preview: bool = True) -> None:
        # Deletions alone count as a reviewable result
        if not self._accumulator:
            self._accumulator = None
            if summary.cancelled:
                logger.info("Run cancelled before anything merged; discarding")
                self._state = RunState.CANCELLED
            else:
                logger.warning("All %d chunks failed to translate", summary.total_chunks)
                self._state = RunState.FAILED
        else:
            if summary.accepted == 0 and preview:
                self._preview("Pending deletions")
            self._state = RunState.AWAITING_DECISION
        summary.state = self._state

    async def _translate_chunk(self, chunk: Chunk) -> tuple[ChunkOutcome, FlatMap | None]:
        self._state = RunState.TRANSLATING
        try:
            request = materialize(chunk.entries)
            result = await self._translator.translate(request, self.target_language)
        except Exception as e:
            # Provider, network and parsing errors all reject just this chunk
            logger.warning("Error translating %s: %s", chunk.chunk_id, e)
            return ChunkOutcome(chunk.chunk_id, len(chunk), ChunkStatus.REJECTED, error=str(e)), None

        self._state = RunState.NORMALIZING
        try:
            normalized = normalize_response(result.translated, chunk.entries)
        except EmptyNormalizationError as e:
            logger.warning("Rejecting %s: %s", chunk.chunk_id, e)
            outcome = ChunkOutcome(
                chunk.chunk_id, len(chunk), ChunkStatus.REJECTED, usage=result.usage, error=str(e)
            )
            return outcome, None

        outcome = ChunkOutcome(
            chunk.chunk_id,
            len(chunk),
            ChunkStatus.ACCEPTED,
            translated=len(normalized),
            usage=result.usage,
        )
        return outcome, normalized

    def _merge(self, outcome: ChunkOutcome, normalized: FlatMap) -> Tree | None:
        """Merge into a copy first so a conflicting chunk leaves the state untouched."""
        self._state = RunState.MERGING
        candidate = self._accumulator.copy()
        try:
            candidate.merge(normalized)
            preview = candidate.materialize(self._target)
        except (ConflictingPathError, ValueError) as e:
            logger.warning("Rejecting %s: %s", outcome.chunk_id, e)
            outcome.status = ChunkStatus.REJECTED
            outcome.translated = 0
            outcome.error = str(e)
            return None

        self._accumulator = candidate
        logger.info("Merged %s (%d keys)", outcome.chunk_id, len(normalized))
        return preview

    def _preview(self, label: str, updated: Tree | None = None) -> None:
        if self._presenter is None:
            return
        if updated is None:
            updated = self._accumulator.materialize(self._target)
        try:
            self._presenter.present(copy.deepcopy(self._target), updated, label)
        except Exception:
            logger.exception("Diff presenter failed for '%s'", label)

    @staticmethod
    def _skip(chunks: Iterable[Chunk], summary: RunSummary) -> None:
        for chunk in chunks:
            summary.record(ChunkOutcome(chunk.chunk_id, len(chunk), ChunkStatus.SKIPPED))

    async def _run_incremental(self, chunks: list[Chunk], summary: RunSummary) -> None:
        for position, chunk in enumerate(chunks):
            if self._cancel_requested:
                summary.cancelled = True
                self._skip(chunks[position:], summary)
                logger.info("Translation cancelled with %d chunks remaining", len(chunks) - position)
                break

            logger.info("Processing %s (%d/%d)", chunk.chunk_id, position + 1, len(chunks))
            outcome, normalized = await self._translate_chunk(chunk)
            if normalized is not None:
                preview = self._merge(outcome, normalized)
                if preview is not None:
                    self._preview(f"Live Translation Progress - {chunk.chunk_id}", preview)
            summary.record(outcome)

    async def _run_bulk(self, chunks: list[Chunk], summary: RunSummary) -> None:
        semaphore = asyncio.Semaphore(self.parallel)

        async def process(chunk: Chunk) -> tuple[ChunkOutcome, FlatMap | None]:
            async with semaphore:
                if self._cancel_requested:
                    return ChunkOutcome(chunk.chunk_id, len(chunk), ChunkStatus.SKIPPED), None
                logger.info("Translating batch %s", chunk.chunk_id)
                return await self._translate_chunk(chunk)

        results = await asyncio.gather(*(process(chunk) for chunk in chunks))

        # Batches are key-disjoint, so merging in submission order after the
        # barrier gives the same state as any completion order.
        for outcome, normalized in results:
            if normalized is not None:
                self._merge(outcome, normalized)
            if outcome.status == ChunkStatus.SKIPPED:
                summary.cancelled = True
            summary.record(outcome)

        if summary.accepted:
            self._preview("Bulk translation")

    def final_tree(self) -> Tree:
        """The target tree with every merged translation and deletion applied."""
        if self._state != RunState.AWAITING_DECISION:
            raise RunError(f"No result to review while {self._state.value}")
        return self._accumulator.materialize(self._target)

    def commit(self, committer, base: Mapping) -> Tree:
        """
        Write the final tree and refresh the base snapshot.

        On ``CommitError`` the engine stays in ``AWAITING_DECISION`` with its
        accumulated state intact, so the commit can be retried.
        """
        tree = self.final_tree()
        committer.commit(tree, base)
        self._state = RunState.COMMITTED
        self._accumulator = None
        return tree

    def discard(self) -> None:
        logger.info("Discarding run result")
        self._accumulator = None
        self._state = RunState.CANCELLED

    def finish(self, committer, base: Mapping) -> bool:
        """Ask the presenter to confirm, then commit or discard. Returns True if committed."""
        if self._presenter is None:
            raise RunError("No presenter to confirm with; call commit() or discard()")
        if self._presenter.confirm(copy.deepcopy(self._target), self.final_tree()):
            self.commit(committer, base)
            return True
        self.discard()
        return False
