"""
MoneyCoach Assistant — LLM Provider Abstraction.

Single public function `complete()` that routes to the configured provider.
Provider is selected at startup via the LLM_PROVIDER env var.
Supports: openai (default, any OpenAI-compatible endpoint such as Groq),
anthropic, gemini, cohere.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# (api_key, model, system, messages, max_tokens, json_mode) -> text
_ProviderFn = Callable[[str, str, str, list[dict], int, bool], Awaitable[str]]


def _alternating(messages: list[dict]) -> list[dict]:
    """Coerce history into strict user/assistant alternation starting with user.

    Anthropic and Gemini reject other shapes; "system" turns count as user.
    """
    result: list[dict] = []
    for msg in messages:
        role = "assistant" if msg["role"] == "assistant" else "user"
        if not result and role == "assistant":
            continue
        if result and result[-1]["role"] == role:
            result[-1] = {"role": role, "content": result[-1]["content"] + "\n\n" + msg["content"]}
        else:
            result.append({"role": role, "content": msg["content"]})
    return result


# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_openai(
    api_key: str, model: str, system: str, messages: list[dict], max_tokens: int, json_mode: bool,
) -> str:
    from openai import AsyncOpenAI

    from moneycoach.config import settings

    client = AsyncOpenAI(api_key=api_key, base_url=settings.LLM_BASE_URL or None)
    kwargs: dict = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        temperature=0.6,
        messages=[{"role": "system", "content": system}, *messages],
        **kwargs,
    )
    return response.choices[0].message.content or ""


async def _complete_anthropic(
    api_key: str, model: str, system: str, messages: list[dict], max_tokens: int, json_mode: bool,
) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=_alternating(messages),
    )
    return response.content[0].text


async def _complete_gemini(
    api_key: str, model: str, system: str, messages: list[dict], max_tokens: int, json_mode: bool,
) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
    )
    contents = [
        {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
        for m in _alternating(messages)
    ]
    config_kwargs: dict = {"max_output_tokens": max_tokens}
    if json_mode:
        config_kwargs["response_mime_type"] = "application/json"
    config = genai.types.GenerationConfig(**config_kwargs)
    response = await gm.generate_content_async(contents, generation_config=config)
    return response.text


async def _complete_cohere(
    api_key: str, model: str, system: str, messages: list[dict], max_tokens: int, json_mode: bool,
) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    kwargs: dict = {}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[{"role": "system", "content": system}, *messages],
        **kwargs,
    )
    return response.message.content[0].text


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
    "cohere":    (_complete_cohere,    "command-a-03-2025"),
}


def _select_provider() -> tuple[_ProviderFn, str, str]:
    """Read settings and return (provider_fn, model, api_key)."""
    from moneycoach.config import settings

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, default_model = _PROVIDERS[provider_name]
    model = settings.LLM_MODEL or default_model
    api_key = settings.LLM_API_KEY

    logger.info("LLM provider: %s, model: %s", provider_name, model)
    return fn, model, api_key


# Lazy singleton — populated on first call to complete()
_provider_fn: _ProviderFn | None = None
_model: str = ""
_api_key: str = ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(
    system: str,
    messages: list[dict],
    max_tokens: int = 1024,
    json_mode: bool = False,
) -> str:
    """Send a system prompt plus chat turns to the configured provider.

    ``messages`` is a list of {"role", "content"} dicts in chronological
    order. Raises on API errors — callers should handle exceptions.
    """
    global _provider_fn, _model, _api_key

    if _provider_fn is None:
        _provider_fn, _model, _api_key = _select_provider()

    return await _provider_fn(_api_key, _model, system, messages, max_tokens, json_mode)
