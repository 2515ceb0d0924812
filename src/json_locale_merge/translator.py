"""OpenAI-backed translator for locale chunks."""

from __future__ import annotations

import asyncio
import json
import logging
import re

from openai import APIError, AsyncOpenAI, RateLimitError

from .config import DEFAULT_MODEL, Settings
from .engine import TokenUsage, TranslationResult
from .errors import ConfigError, TranslatorError

logger = logging.getLogger(__name__)

# Backoff thresholds (in seconds)
MAX_DELAY = 64  # Reset backoff after reaching this delay
RESET_DELAY = 16  # Delay to reset to after hitting MAX_DELAY

JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = """You are a helpful assistant that translates user interface strings to {language}. The content to translate is provided as JSON. You provide the output as JSON matching the exact same structure.

Rules:
- Maintain all keys from the input exactly as they are, at the same nesting level
- Do not group, repeat or flatten keys
- Any values that begin with '@:' should remain unchanged (these are references)
- When you encounter values enclosed in braces like '{{variable_name}}', keep the variable name unchanged. The placeholder position can change to fit the target language grammar.
- Translate all user-facing text naturally for the target language

{context}"""


def _get_client(api_key: str | None, base_url: str | None) -> AsyncOpenAI:
    """Get async OpenAI client."""
    if not api_key and not base_url:
        raise ConfigError(
            "OPENAI_API_KEY environment variable not set. "
            "Set it in your environment or in a .env file."
        )
    # Local OpenAI-compatible servers (e.g. Ollama) accept any key
    return AsyncOpenAI(api_key=api_key or "not-needed", base_url=base_url)


def _generate_schema_from_value(value):
    """
    Generate a JSON schema from a locale tree.

    This allows Structured Outputs to guarantee the response matches the input structure.
    """
    if isinstance(value, dict):
        return {
            "type": "object",
            "properties": {k: _generate_schema_from_value(v) for k, v in value.items()},
            "required": list(value.keys()),
            "additionalProperties": False,
        }
    return {"type": "string"}


def extract_json(text: str):
    """
    Parse the JSON object in a model reply.

    Accepts bare JSON as well as JSON wrapped in prose or a fenced code block.

    Raises:
        TranslatorError: If no decodable JSON object is found
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    match = JSON_OBJECT_RE.search(text)
    if not match:
        raise TranslatorError("No valid JSON found in the response", operation="parse")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise TranslatorError(f"Unable to decode JSON: {e}", operation="parse") from e


class OpenAITranslator:
    """
    Translator collaborator using the OpenAI chat completions API.

    With ``structured=True`` requests use Structured Outputs with a strict
    schema mirroring the request tree. Set it to ``False`` for
    OpenAI-compatible servers that do not support ``json_schema``; the reply
    is then parsed with ``extract_json``.
    """

    provider = "openai"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        base_url: str | None = None,
        context: str = "",
        structured: bool = True,
        max_concurrent_requests: int = 10,
        initial_retry_delay: float = 1.0,
        max_backoff_resets: int = 5,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.context = context
        self.structured = structured
        self.initial_retry_delay = initial_retry_delay
        self.max_backoff_resets = max_backoff_resets
        self.client = client or _get_client(api_key, base_url)
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)

    @classmethod
    def from_settings(cls, settings: Settings, context: str = "", structured: bool = True) -> OpenAITranslator:
        return cls(
            model=settings.model,
            api_key=settings.api_key,
            base_url=settings.base_url,
            context=context,
            structured=structured,
            max_concurrent_requests=settings.max_concurrent_requests,
            initial_retry_delay=settings.initial_retry_delay,
            max_backoff_resets=settings.max_backoff_resets,
        )

    async def _api_call_with_retry(self, api_call_func, *args, **kwargs):
        """
        Execute an API call with rate limiting and exponential backoff retry.

        Backoff pattern: 1 -> 2 -> 4 -> 8 -> 16 -> 32 -> 64 -> 16 -> 32 -> 64 -> ...
        Resets to 16s after hitting 64s. Gives up after ``max_backoff_resets`` resets.

        Raises:
            RateLimitError: If all retries are exhausted
        """
        delay = self.initial_retry_delay
        reset_count = 0
        attempt = 0

        while True:
            async with self._semaphore:
                try:
                    return await api_call_func(*args, **kwargs)
                except RateLimitError as e:
                    attempt += 1

                    if reset_count >= self.max_backoff_resets:
                        logger.warning("Rate limit retry timeout after %d backoff resets", reset_count)
                        raise

                    # Extract retry-after header if available
                    retry_after = getattr(e, "retry_after", None)
                    wait_time = float(retry_after) if retry_after else delay

                    logger.warning(
                        "Rate limited, waiting %.1fs (attempt %d, reset %d/%d)",
                        wait_time,
                        attempt,
                        reset_count,
                        self.max_backoff_resets,
                    )
                    await asyncio.sleep(wait_time)

                    delay *= 2
                    if delay > MAX_DELAY:
                        delay = RESET_DELAY
                        reset_count += 1

    def _build_request(self, tree: dict, target_language: str) -> dict:
        source_text = json.dumps(tree, ensure_ascii=False, indent=2)
        prompt = f"Translate the following JSON to {target_language}:\n```\n{source_text}\n```\n"
        request = {
            "model": self.model,
            "messages": [
                {
                    "role": "system",
                    "content": SYSTEM_PROMPT.format(language=target_language, context=self.context),
                },
                {"role": "user", "content": prompt},
            ],
        }
        if self.structured:
            request["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": "translation_output",
                    "schema": _generate_schema_from_value(tree),
                    "strict": True,
                },
            }
        return request

    async def translate(self, tree: dict, target_language: str) -> TranslationResult:
        """
        Translate ``tree`` into ``target_language``.

        Raises:
            TranslatorError: On API errors, refusals, truncated or undecodable replies
        """
        request = self._build_request(tree, target_language)
        try:
            response = await self._api_call_with_retry(self.client.chat.completions.create, **request)
        except RateLimitError as e:
            raise TranslatorError(f"Rate limited: {e}", provider=self.provider, retryable=True) from e
        except APIError as e:
            raise TranslatorError(f"OpenAI request failed: {e}", provider=self.provider) from e

        if not response.choices:
            raise TranslatorError("No choices in OpenAI response", provider=self.provider)
        choice = response.choices[0]
        message = choice.message

        # Handle refusals
        if getattr(message, "refusal", None):
            raise TranslatorError(f"Model refused to translate: {message.refusal}", provider=self.provider)

        # Check for incomplete response
        if choice.finish_reason == "length":
            raise TranslatorError("Response was truncated due to length limit", provider=self.provider)

        translated = extract_json(message.content or "")
        usage = TokenUsage()
        if response.usage:
            usage = TokenUsage(response.usage.prompt_tokens, response.usage.completion_tokens)
        return TranslationResult(translated=translated, usage=usage)
