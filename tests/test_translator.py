"""Tests for the OpenAI translator."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from openai import APIError as OpenAIAPIError
from openai import RateLimitError as OpenAIRateLimitError

from json_locale_merge.config import Settings
from json_locale_merge.errors import ConfigError, TranslatorError
from json_locale_merge.translator import (
    OpenAITranslator,
    _generate_schema_from_value,
    _get_client,
    extract_json,
)


def make_response(content='{"home": {"title": "Bienvenue"}}', finish_reason="stop", refusal=None, usage=True):
    message = SimpleNamespace(content=content, refusal=refusal)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=7) if usage else None,
    )


def make_translator(response=None, side_effect=None, **kwargs):
    client = Mock()
    client.chat.completions.create = AsyncMock(return_value=response or make_response(), side_effect=side_effect)
    kwargs.setdefault("initial_retry_delay", 0)
    return OpenAITranslator(model="gpt-test", client=client, **kwargs), client


@pytest.mark.asyncio
async def test_translate_success():
    translator, client = make_translator()
    result = await translator.translate({"home": {"title": "Welcome"}}, "French")

    assert result.translated == {"home": {"title": "Bienvenue"}}
    assert result.usage.input_tokens == 12
    assert result.usage.output_tokens == 7

    request = client.chat.completions.create.call_args.kwargs
    assert request["model"] == "gpt-test"
    assert "French" in request["messages"][0]["content"]
    assert '"title": "Welcome"' in request["messages"][1]["content"]
    schema = request["response_format"]["json_schema"]
    assert schema["strict"] is True
    assert schema["schema"]["required"] == ["home"]


@pytest.mark.asyncio
async def test_context_is_added_to_system_prompt():
    translator, client = make_translator(context="**Glossary**:\n- \"Run\" refers to a job")
    await translator.translate({"a": "b"}, "German")

    system = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
    assert '"Run" refers to a job' in system


@pytest.mark.asyncio
async def test_unstructured_reply_is_extracted():
    reply = 'Here you go:\n```json\n{"a": "Bonjour"}\n```'
    translator, client = make_translator(make_response(content=reply), structured=False)
    result = await translator.translate({"a": "Hello"}, "French")

    assert result.translated == {"a": "Bonjour"}
    assert "response_format" not in client.chat.completions.create.call_args.kwargs


@pytest.mark.asyncio
async def test_missing_usage_counts_zero():
    translator, _ = make_translator(make_response(usage=False))
    result = await translator.translate({"a": "Hello"}, "French")
    assert result.usage.total == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response, message",
    [
        (SimpleNamespace(choices=[], usage=None), "No choices"),
        (make_response(refusal="I can't"), "refused"),
        (make_response(finish_reason="length"), "truncated"),
        (make_response(content="not json at all"), "No valid JSON"),
    ],
)
async def test_bad_replies_raise(response, message):
    translator, _ = make_translator(response)
    with pytest.raises(TranslatorError, match=message):
        await translator.translate({"a": "Hello"}, "French")


@pytest.mark.asyncio
async def test_api_error_becomes_translator_error():
    error = OpenAIAPIError(message="test error", request=Mock(), body=None)
    translator, _ = make_translator(side_effect=error)

    with pytest.raises(TranslatorError) as exc_info:
        await translator.translate({"a": "Hello"}, "French")
    assert exc_info.value.provider == "openai"
    assert not exc_info.value.retryable
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_rate_limit_is_retried():
    error = OpenAIRateLimitError(message="rate limit", response=Mock(), body=None)
    translator, client = make_translator(side_effect=[error, make_response()])

    result = await translator.translate({"home": {"title": "Welcome"}}, "French")
    assert result.translated == {"home": {"title": "Bienvenue"}}
    assert client.chat.completions.create.await_count == 2


@pytest.mark.asyncio
async def test_rate_limit_gives_up():
    error = OpenAIRateLimitError(message="rate limit", response=Mock(), body=None)
    translator, client = make_translator(side_effect=error, max_backoff_resets=0)

    with pytest.raises(TranslatorError) as exc_info:
        await translator.translate({"a": "Hello"}, "French")
    assert exc_info.value.retryable
    assert client.chat.completions.create.await_count == 1


def test_client_requires_key_or_base_url():
    with pytest.raises(ConfigError):
        _get_client(None, None)


def test_from_settings():
    settings = Settings(api_key="sk-test", model="gpt-x", max_backoff_resets=2)
    translator = OpenAITranslator.from_settings(settings, context="ctx", structured=False)
    assert translator.model == "gpt-x"
    assert translator.context == "ctx"
    assert translator.max_backoff_resets == 2
    assert not translator.structured


def test_schema_mirrors_tree():
    assert _generate_schema_from_value({"a": {"b": "x"}, "c": "y"}) == {
        "type": "object",
        "properties": {
            "a": {
                "type": "object",
                "properties": {"b": {"type": "string"}},
                "required": ["b"],
                "additionalProperties": False,
            },
            "c": {"type": "string"},
        },
        "required": ["a", "c"],
        "additionalProperties": False,
    }


def test_extract_json():
    assert extract_json('{"a": 1}') == {"a": 1}
    assert extract_json('Sure! {"a": {"b": "c"}} Hope this helps.') == {"a": {"b": "c"}}
    with pytest.raises(TranslatorError) as exc_info:
        extract_json("{broken")
    assert exc_info.value.operation == "parse"
