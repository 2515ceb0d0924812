"""Tests for loading locale files and committing merged results."""

import json
import os

import pytest

from json_locale_merge.committer import Committer, load_snapshot, load_tree, snapshot_path
from json_locale_merge.errors import CommitError, InvalidTreeError


@pytest.fixture
def files(tmp_path):
    base_file = tmp_path / "en.json"
    target_file = tmp_path / "fr.json"
    base_file.write_text(json.dumps({"hello": "Hello"}), encoding="utf-8")
    return base_file, target_file


def leftover_temps(directory):
    return [p.name for p in directory.iterdir() if p.suffix == ".tmp"]


def test_snapshot_path():
    assert snapshot_path("locales/en.json").name == "en.json.original"


def test_load_tree_rejects_non_objects(tmp_path):
    path = tmp_path / "list.json"
    path.write_text('["a", "b"]', encoding="utf-8")
    with pytest.raises(InvalidTreeError):
        load_tree(path)


def test_load_snapshot_absent(files):
    base_file, _ = files
    assert load_snapshot(base_file) is None


def test_commit_writes_target_and_snapshot(files):
    base_file, target_file = files
    committer = Committer(target_file, base_file)
    committer.commit({"hello": "Bonjour", "ü": "Größe"}, {"hello": "Hello"})

    assert target_file.read_text(encoding="utf-8") == '{\n  "hello": "Bonjour",\n  "ü": "Größe"\n}'
    assert load_snapshot(base_file) == {"hello": "Hello"}
    assert committer.snapshot_file == base_file.parent / "en.json.original"
    assert leftover_temps(base_file.parent) == []


def test_commit_overwrites_previous_files(files):
    base_file, target_file = files
    committer = Committer(target_file, base_file)
    committer.commit({"hello": "Salut"}, {"hello": "Hi"})
    committer.commit({"hello": "Bonjour"}, {"hello": "Hello"})

    assert load_tree(target_file) == {"hello": "Bonjour"}
    assert load_snapshot(base_file) == {"hello": "Hello"}


def test_commit_creates_missing_directories(tmp_path):
    base_file = tmp_path / "en.json"
    target_file = tmp_path / "out" / "fr.json"
    Committer(target_file, base_file).commit({"a": "A"}, {"a": "A"})
    assert load_tree(target_file) == {"a": "A"}


def test_snapshot_failure_restores_previous_target(files, monkeypatch):
    base_file, target_file = files
    target_file.write_text('{"hello": "Salut"}', encoding="utf-8")
    committer = Committer(target_file, base_file)
    real_replace = os.replace

    def failing_replace(src, dst):
        if str(dst) == str(committer.snapshot_file):
            raise OSError("disk full")
        return real_replace(src, dst)

    monkeypatch.setattr("json_locale_merge.committer.os.replace", failing_replace)

    with pytest.raises(CommitError) as exc_info:
        committer.commit({"hello": "Bonjour"}, {"hello": "Hello"})

    assert isinstance(exc_info.value.__cause__, OSError)
    assert target_file.read_text(encoding="utf-8") == '{"hello": "Salut"}'
    assert not committer.snapshot_file.exists()
    assert leftover_temps(base_file.parent) == []


def test_snapshot_failure_removes_new_target(files, monkeypatch):
    base_file, target_file = files
    committer = Committer(target_file, base_file)
    real_replace = os.replace

    def failing_replace(src, dst):
        if str(dst) == str(committer.snapshot_file):
            raise OSError("disk full")
        return real_replace(src, dst)

    monkeypatch.setattr("json_locale_merge.committer.os.replace", failing_replace)

    with pytest.raises(CommitError):
        committer.commit({"hello": "Bonjour"}, {"hello": "Hello"})
    assert not target_file.exists()


def test_target_failure_changes_nothing(files, monkeypatch):
    base_file, target_file = files
    committer = Committer(target_file, base_file)
    committer.commit({"hello": "Salut"}, {"hello": "Hi"})

    def failing_replace(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr("json_locale_merge.committer.os.replace", failing_replace)

    with pytest.raises(CommitError) as exc_info:
        committer.commit({"hello": "Bonjour"}, {"hello": "Hello"})

    assert exc_info.value.path == target_file
    assert load_tree(target_file) == {"hello": "Salut"}
    assert load_snapshot(base_file) == {"hello": "Hi"}
    assert leftover_temps(base_file.parent) == []


def test_failed_restore_is_reported_as_commit_error(files, monkeypatch):
    base_file, target_file = files
    target_file.write_text('{"hello": "Salut"}', encoding="utf-8")
    committer = Committer(target_file, base_file)
    real_replace = os.replace
    target_replaces = []

    def failing_replace(src, dst):
        if str(dst) == str(committer.snapshot_file):
            raise OSError("disk full")
        target_replaces.append(src)
        if len(target_replaces) > 1:
            raise OSError("device unplugged")
        return real_replace(src, dst)

    monkeypatch.setattr("json_locale_merge.committer.os.replace", failing_replace)

    with pytest.raises(CommitError) as exc_info:
        committer.commit({"hello": "Bonjour"}, {"hello": "Hello"})

    error = exc_info.value
    assert error.path == target_file
    assert str(error.__cause__) == "disk full"
    assert str(error.__context__) == "device unplugged"
    assert leftover_temps(base_file.parent) == []
