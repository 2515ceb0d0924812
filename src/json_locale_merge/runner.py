"""Translate one target locale file against its base file."""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path

from .changeset import compute_change_set, split_deletions
from .chunker import Chunk, split_into_batches, split_into_chunks
from .committer import Committer, load_snapshot, load_tree
from .engine import DiffPresenter, MergeEngine, RunState, Translator


def _load_inputs(base_file: Path, target_file: Path) -> tuple[dict, dict, dict | None]:
    if not base_file.exists():
        raise FileNotFoundError(f"Base locale file not found: {base_file}")
    base = load_tree(base_file)
    target = load_tree(target_file) if target_file.exists() else {}
    return base, target, load_snapshot(base_file)


def _install_interrupt_handler(engine: MergeEngine) -> bool:
    """
    Turn the first Ctrl-C into a graceful ``engine.cancel()``.

    The handler removes itself, so a second Ctrl-C interrupts as usual.
    Returns False where the event loop cannot take signal handlers.
    """
    loop = asyncio.get_running_loop()

    def on_interrupt() -> None:
        print(
            "\nCancelling after the current chunk (press Ctrl-C again to abort)...",
            file=sys.stderr,
        )
        engine.cancel()
        loop.remove_signal_handler(signal.SIGINT)

    try:
        loop.add_signal_handler(signal.SIGINT, on_interrupt)
    except (NotImplementedError, RuntimeError, ValueError):
        # Windows event loops, or not running in the main thread
        return False
    return True


def plan_json_file(
    base_file: Path,
    target_file: Path,
    chunk_size: int = 3000,
    batch_size: int = 50,
    mode: str = "incremental",
) -> tuple[dict, list[Chunk]]:
    """
    Compute the change set and chunk plan without calling a translator.

    Returns:
        Tuple of (change set, chunks of the translatable entries)
    """
    base, target, snapshot = _load_inputs(Path(base_file), Path(target_file))
    changes = compute_change_set(base, target, snapshot)
    pending, _ = split_deletions(changes)
    if mode == "bulk":
        return changes, list(split_into_batches(pending, batch_size))
    return changes, split_into_chunks(pending, chunk_size)


async def translate_json_file(
    translator: Translator,
    base_file: Path,
    target_file: Path,
    target_language: str,
    presenter: DiffPresenter | None = None,
    chunk_size: int = 3000,
    batch_size: int = 50,
    parallel: int = 1,
    mode: str = "incremental",
    handle_interrupts: bool = False,
) -> dict:
    """
    Translate a JSON locale file from the base language to a target language.

    With a presenter, progress is previewed after each merged chunk and the
    presenter's ``confirm`` decides whether the result is written. Without
    one, a reviewable result is committed directly.

    Args:
        translator: Translator collaborator
        base_file: Path to the base-language JSON file
        target_file: Path to the target-language JSON file (may not exist yet)
        target_language: Full name of the target language (e.g., 'German')
        presenter: Optional diff presenter
        chunk_size: Character budget per chunk (incremental mode)
        batch_size: Keys per batch (bulk mode)
        parallel: Concurrent translator calls (bulk mode)
        mode: ``"incremental"`` or ``"bulk"``
        handle_interrupts: Make the first Ctrl-C stop after the current chunk
            and keep the merged result for review

    Returns:
        Dictionary with the run summary, final state and whether the result was committed

    Raises:
        FileNotFoundError: If the base file is missing
        NoChangesError: If the target is already in sync
        CommitError: If the result could not be written
    """
    base_file = Path(base_file)
    target_file = Path(target_file)
    base, target, snapshot = _load_inputs(base_file, target_file)

    engine = MergeEngine(
        translator,
        presenter,
        target_language=target_language,
        chunk_size=chunk_size,
        batch_size=batch_size,
        parallel=parallel,
        mode=mode,
    )
    installed = handle_interrupts and _install_interrupt_handler(engine)
    try:
        summary = await engine.run(base, target, snapshot)
    finally:
        if installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
    print(summary.describe())
    print()

    committed = False
    if engine.state == RunState.AWAITING_DECISION:
        committer = Committer(target_file, base_file)
        if presenter is None:
            engine.commit(committer, base)
            committed = True
        else:
            committed = engine.finish(committer, base)

    return {
        "target_language": target_language,
        "output_file": target_file,
        "summary": summary,
        "state": engine.state,
        "committed": committed,
    }
