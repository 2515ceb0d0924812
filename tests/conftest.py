"""Shared test fixtures for json-locale-merge."""

import pytest

from json_locale_merge.engine import TokenUsage, TranslationResult


def prefix_strings(tree, prefix):
    if isinstance(tree, dict):
        return {key: prefix_strings(value, prefix) for key, value in tree.items()}
    return f"{prefix}{tree}"


class FakeTranslator:
    """Translates by prefixing every string; scripted per call when needed.

    ``script`` maps a 0-based call number to either an exception to raise,
    a callable ``(tree) -> response``, or a literal response.
    """

    def __init__(self, prefix="[fr] ", script=None, usage=(10, 5), on_call=None):
        self.prefix = prefix
        self.script = script or {}
        self.usage = usage
        self.on_call = on_call
        self.calls = []

    async def translate(self, tree, target_language):
        call = len(self.calls)
        self.calls.append((tree, target_language))
        if self.on_call:
            self.on_call(call, tree)

        action = self.script.get(call)
        if isinstance(action, BaseException):
            raise action
        if callable(action):
            response = action(tree)
        elif action is not None:
            response = action
        else:
            response = prefix_strings(tree, self.prefix)
        return TranslationResult(translated=response, usage=TokenUsage(*self.usage))


class RecordingPresenter:
    def __init__(self, answer=True, on_present=None):
        self.answer = answer
        self.on_present = on_present
        self.presented = []
        self.confirmed = []

    def present(self, original, updated, label):
        self.presented.append((original, updated, label))
        if self.on_present:
            self.on_present(len(self.presented))

    def confirm(self, original, updated):
        self.confirmed.append((original, updated))
        return self.answer


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def base_tree():
    return {
        "common": {"save": "Save", "cancel": "Cancel"},
        "home": {"title": "Welcome", "subtitle": "Start here"},
        "footer": "All rights reserved",
    }


@pytest.fixture
def make_translator():
    return FakeTranslator


@pytest.fixture
def make_presenter():
    return RecordingPresenter
