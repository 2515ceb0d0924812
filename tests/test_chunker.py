"""Tests for chunking the change set."""

import pytest

from json_locale_merge.chunker import serialized_size, split_into_batches, split_into_chunks

SIZES = {"a": 22, "b": 14, "c": 10}


def table_size(path, value):
    return SIZES[path]


def test_serialized_size_matches_indented_json():
    assert serialized_size("a", "1111111111") == 23
    assert serialized_size("greeting", "Grüß") == len('{\n  "greeting": "Grüß"\n}')


def test_two_entries_fit_in_budget():
    chunks = split_into_chunks({"a": "1111111111", "b": "22"}, 40, table_size)
    assert len(chunks) == 1
    assert chunks[0].size == 36


def test_third_entry_opens_second_chunk():
    flat = {"a": "1111111111", "b": "22", "c": "3"}
    chunks = split_into_chunks(flat, 40, table_size)
    assert [list(chunk.entries) for chunk in chunks] == [["a", "b"], ["c"]]
    assert [chunk.chunk_id for chunk in chunks] == ["chunk_1", "chunk_2"]


def test_oversized_entry_gets_its_own_chunk():
    flat = {"short": "x", "long": "y" * 200, "tail": "z"}
    chunks = split_into_chunks(flat, 50)
    assert [list(chunk.entries) for chunk in chunks] == [["short"], ["long"], ["tail"]]
    assert chunks[1].size > 50


def test_chunks_cover_input_exactly_and_respect_budget():
    flat = {f"section{i // 7}.key{i}": "word " * (i % 11) for i in range(120)}
    budget = 300
    chunks = split_into_chunks(flat, budget)

    paths = [path for chunk in chunks for path in chunk.entries]
    assert paths == list(flat)
    assert len(paths) == len(set(paths))
    for chunk in chunks:
        if len(chunk) > 1:
            assert chunk.size <= budget
        assert chunk.size == sum(serialized_size(p, v) for p, v in chunk.entries.items())


def test_empty_input_has_no_chunks():
    assert split_into_chunks({}, 100) == []


def test_non_positive_budget_rejected():
    with pytest.raises(ValueError):
        split_into_chunks({"a": "A"}, 0)


def test_batches_have_fixed_key_count():
    flat = {f"k{i}": str(i) for i in range(7)}
    batches = list(split_into_batches(flat, 3))
    assert [len(batch) for batch in batches] == [3, 3, 1]
    assert [batch.chunk_id for batch in batches] == ["chunk_1", "chunk_2", "chunk_3"]
    assert [p for batch in batches for p in batch.entries] == list(flat)


def test_non_positive_batch_size_rejected():
    with pytest.raises(ValueError):
        list(split_into_batches({"a": "A"}, 0))
