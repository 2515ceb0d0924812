"""Load locale files and commit merged results atomically."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

from .errors import CommitError, InvalidTreeError

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".original"


def snapshot_path(base_file: Path) -> Path:
    """Location of the base snapshot: ``en.json`` -> ``en.json.original``."""
    base_file = Path(base_file)
    return base_file.with_name(base_file.name + SNAPSHOT_SUFFIX)


def load_tree(path: Path) -> dict:
    """
    Load a JSON locale file.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
        InvalidTreeError: If the top-level value is not an object
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise InvalidTreeError(str(path), data)
    return data


def load_snapshot(base_file: Path) -> dict | None:
    """The base tree as of the last commit, or ``None`` before the first one."""
    path = snapshot_path(base_file)
    if not path.exists():
        return None
    return load_tree(path)


def _dump(tree: Mapping) -> bytes:
    return json.dumps(tree, ensure_ascii=False, indent=2).encode("utf-8")


def _write_temp(final_path: Path, data: bytes) -> Path:
    """Write ``data`` to a fsynced temp file next to ``final_path``."""
    final_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        prefix=final_path.name + ".",
        suffix=".tmp",
        dir=str(final_path.parent),
        delete=False,
    ) as tf:
        tf.write(data)
        tf.flush()
        os.fsync(tf.fileno())
        return Path(tf.name)


def _discard_temp(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


class Committer:
    """
    Writes the merged target tree and the refreshed base snapshot.

    Both files are staged as temp files first. The target is replaced, then
    the snapshot; if the snapshot cannot be replaced the previous target is
    put back, so a failed commit leaves neither file changed.
    """

    def __init__(self, target_file: Path, base_file: Path) -> None:
        self.target_file = Path(target_file)
        self.base_file = Path(base_file)
        self.snapshot_file = snapshot_path(self.base_file)

    def commit(self, tree: Mapping, base: Mapping) -> None:
        previous = self.target_file.read_bytes() if self.target_file.exists() else None

        staged: list[Path] = []
        try:
            target_tmp = _write_temp(self.target_file, _dump(tree))
            staged.append(target_tmp)
            snapshot_tmp = _write_temp(self.snapshot_file, _dump(base))
            staged.append(snapshot_tmp)
        except OSError as e:
            for tmp in staged:
                _discard_temp(tmp)
            raise CommitError(self.target_file, e) from e

        try:
            os.replace(target_tmp, self.target_file)
        except OSError as e:
            _discard_temp(target_tmp)
            _discard_temp(snapshot_tmp)
            raise CommitError(self.target_file, e) from e

        try:
            os.replace(snapshot_tmp, self.snapshot_file)
        except OSError as e:
            _discard_temp(snapshot_tmp)
            try:
                self._restore_target(previous)
            except OSError as restore_error:
                logger.error("Could not restore %s: %s", self.target_file, restore_error)
                # __cause__ is the snapshot failure, __context__ the restore failure
                raise CommitError(self.target_file, restore_error) from e
            raise CommitError(self.snapshot_file, e) from e

        logger.info("Committed %s and %s", self.target_file, self.snapshot_file)

    def _restore_target(self, previous: bytes | None) -> None:
        if previous is None:
            self.target_file.unlink()
            return
        tmp = _write_temp(self.target_file, previous)
        try:
            os.replace(tmp, self.target_file)
        except OSError:
            _discard_temp(tmp)
            raise
        logger.warning("Snapshot write failed; restored %s", self.target_file)
