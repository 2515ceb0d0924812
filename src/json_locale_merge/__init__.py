"""json-locale-merge: Incrementally translate JSON locale files with an LLM."""

__version__ = "0.1.0"

from .changeset import compute_change_set
from .chunker import Chunk, split_into_batches, split_into_chunks
from .committer import Committer, load_snapshot, load_tree, snapshot_path
from .engine import AccumulatorState, MergeEngine, RunState, RunSummary, TokenUsage, TranslationResult
from .errors import (
    CommitError,
    ConflictingPathError,
    EmptyNormalizationError,
    InvalidTreeError,
    LocaleMergeError,
    NoChangesError,
    TranslatorError,
)
from .normalizer import normalize_response
from .runner import translate_json_file
from .tree import flatten, materialize, overlay

__all__ = [
    "__version__",
    "AccumulatorState",
    "Chunk",
    "CommitError",
    "Committer",
    "ConflictingPathError",
    "EmptyNormalizationError",
    "InvalidTreeError",
    "LocaleMergeError",
    "MergeEngine",
    "NoChangesError",
    "RunState",
    "RunSummary",
    "TokenUsage",
    "TranslationResult",
    "TranslatorError",
    "compute_change_set",
    "flatten",
    "load_snapshot",
    "load_tree",
    "materialize",
    "normalize_response",
    "overlay",
    "snapshot_path",
    "split_into_batches",
    "split_into_chunks",
    "translate_json_file",
]
