"""LLM client for Gemini / OpenAI / LM Studio.

All providers are reached through the OpenAI-compatible chat completions
API. Content generation only needs single-turn JSON requests, so the client
exposes chat() plus simple_json(), which extracts a JSON object from the
reply and asks the model to repair unparsable output.

Supported providers:
- gemini: Google Gemini via its OpenAI-compatible endpoint
- openai: OpenAI API
- lmstudio: Local LM Studio server
"""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog
from openai import OpenAI

from learnpath.config.app_config import AppConfig, load_app_config

logger = structlog.get_logger(__name__)

# =============================================================================
# CONSTANTS
# =============================================================================

Provider = Literal["gemini", "openai", "lmstudio"]

# Providers that accept response_format={"type": "json_object"}
JSON_OBJECT_PROVIDERS = frozenset({"gemini", "openai"})

JSON_REPAIR_PROMPT = """Your previous reply was not a valid JSON object:
<<<
{invalid_output}
>>>

Reply again with the same content as one valid JSON object. No markdown, no comments."""

# Reasoning blocks some models emit before the answer
REASONING_TAGS = re.compile(
    r"<(think|analysis|reasoning)>.*?</\1>",
    re.DOTALL | re.IGNORECASE,
)
FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


# =============================================================================
# JSON EXTRACTION
# =============================================================================


def strip_reasoning(text: str) -> str:
    return REASONING_TAGS.sub("", text).strip()


def _json_candidates(text: str):
    yield text

    fenced = FENCED_BLOCK.search(text)
    if fenced:
        yield fenced.group(1).strip()

    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        yield text[start : end + 1]


def extract_json_object(text: str) -> dict[str, Any] | None:
    """First JSON object found in a model reply, or None.

    Tries the whole reply, then a fenced ```json block, then the outermost
    {...} span. Arrays and scalars do not count.
    """
    for candidate in _json_candidates(strip_reasoning(text)):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class LLMConfig:
    """Configuration for LLM client."""

    provider: str = "gemini"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    model: str = "gemini-2.5-flash-lite"
    temperature: float = 0.7
    max_tokens: int = 4096
    timeout: int = 120
    api_key: str | None = None

    @property
    def supports_json_object(self) -> bool:
        return self.provider in JSON_OBJECT_PROVIDERS

    @classmethod
    def from_app_config(cls, app_config: AppConfig | None = None) -> LLMConfig:
        """Build client configuration from the application config."""
        if app_config is None:
            app_config = load_app_config()

        provider = app_config.active_provider
        provider_config = app_config.providers.get(provider)
        if provider_config is None:
            logger.warning("provider_not_configured", provider=provider)
            return cls()

        return cls(
            provider=provider,
            base_url=provider_config.base_url or "",
            model=provider_config.default_model,
            temperature=app_config.ai.temperature,
            max_tokens=app_config.ai.max_tokens,
            timeout=app_config.ai.timeout,
            api_key=provider_config.get_api_key(),
        )


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    provider: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


class LLMError(Exception):
    """Error during LLM interaction."""

    pass


class LLMConnectionError(LLMError):
    """Provider could not be reached."""

    pass


class LLMResponseError(LLMError):
    """Provider replied with something unusable."""

    pass


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """Chat client over the OpenAI-compatible API."""

    def __init__(self, config: LLMConfig | None = None, model: str | None = None):
        if config is None:
            config = LLMConfig.from_app_config()
        if model is not None:
            config.model = model
        self.config = config

        self._client = OpenAI(
            base_url=config.base_url or None,
            api_key=config.api_key or "not-needed",
            timeout=config.timeout,
        )

        logger.info(
            "llm_client_initialized",
            provider=config.provider,
            model=config.model,
            base_url=config.base_url,
        )

    def chat(self, messages: list[Message], json_mode: bool = False) -> LLMResponse:
        """Send one chat completion request.

        Raises:
            LLMConnectionError: the provider could not be reached
            LLMResponseError: the reply had no choices
            LLMError: any other SDK failure
        """
        request: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_dict() for m in messages],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if json_mode and self.config.supports_json_object:
            request["response_format"] = {"type": "json_object"}

        started = time.monotonic()
        try:
            response = self._client.chat.completions.create(**request)
        except Exception as e:
            if "connect" in str(e).lower():
                raise LLMConnectionError(
                    f"Could not connect to {self.config.provider} at {self.config.base_url}: {e}"
                ) from e
            raise LLMError(f"LLM call failed: {e}") from e

        if not response.choices:
            raise LLMResponseError("Empty response from LLM")

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        result = LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            provider=self.config.provider,
            usage=usage,
            latency_ms=int((time.monotonic() - started) * 1000),
        )
        logger.debug(
            "llm_response",
            provider=result.provider,
            model=result.model,
            tokens=result.total_tokens,
            latency_ms=result.latency_ms,
        )
        return result

    def simple_json(
        self,
        system_prompt: str,
        user_message: str,
        max_retries: int = 1,
    ) -> dict[str, Any]:
        """Single-turn request expecting a JSON object back.

        An unparsable reply is sent back with a repair instruction up to
        max_retries times.

        Raises:
            LLMResponseError: no JSON object after the retries
        """
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_message),
        ]
        reply = self.chat(messages, json_mode=True).content

        for attempt in range(max_retries + 1):
            parsed = extract_json_object(reply)
            if parsed is not None:
                if attempt:
                    logger.info("json_recovered_after_repair", attempts=attempt)
                return parsed
            if attempt == max_retries:
                break

            logger.warning(
                "json_parse_failed_retrying",
                provider=self.config.provider,
                content=reply[:100],
            )
            repair = Message(role="user", content=JSON_REPAIR_PROMPT.format(invalid_output=reply[:1000]))
            reply = self.chat(messages + [Message(role="assistant", content=reply), repair], json_mode=True).content

        raise LLMResponseError(f"Could not obtain valid JSON: {reply[:200]}...")
