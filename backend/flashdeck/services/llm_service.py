"""
LLM inference service for flashdeck.

Talks to a local Ollama server (``settings.ollama_base_url``) and returns the
assistant message as plain text or as parsed JSON.

Usage:
    text = await chat_text(system_prompt, user_prompt)
    data = await chat_json(system_prompt, user_prompt)
"""
from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from flashdeck.config import settings

logger = logging.getLogger(__name__)


class LLMUnavailableError(Exception):
    """Raised when the Ollama server or the configured model is not available."""


async def _model_installed(client: httpx.AsyncClient, model: str) -> bool:
    """True when Ollama lists a model with the same name prefix (e.g. 'llama3.2')."""
    try:
        res = await client.get(f"{settings.ollama_base_url}/api/tags", timeout=1.5)
    except httpx.HTTPError as e:
        logger.warning("Ollama not reachable: %s", e)
        return False
    if res.status_code != 200:
        return False
    prefix = model.split(":")[0]
    return any(
        m.get("name", "").split(":")[0] == prefix for m in res.json().get("models", [])
    )


async def _chat(
    system_prompt: str | None,
    user_prompt: str,
    max_tokens: int | None,
    temperature: float | None,
    client: httpx.AsyncClient | None,
    response_format: str | None = None,
) -> str:
    model = settings.report_model
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "stream": False,
        "options": {
            "num_predict": max_tokens or settings.report_max_tokens,
            "temperature": (
                settings.report_temperature if temperature is None else temperature
            ),
        },
    }
    if response_format:
        payload["format"] = response_format

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient()
    try:
        if not await _model_installed(client, model):
            raise LLMUnavailableError(
                f"Ollama model {model!r} is not available at {settings.ollama_base_url}"
            )
        res = await client.post(
            f"{settings.ollama_base_url}/api/chat",
            json=payload,
            timeout=settings.llm_timeout,
        )
        res.raise_for_status()
        return (res.json().get("message") or {}).get("content", "")
    finally:
        if owns_client:
            await client.aclose()


async def chat_text(
    system_prompt: str | None,
    user_prompt: str,
    max_tokens: int | None = None,
    temperature: float | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """
    Send a non-streaming chat request and return the reply text.

    Raises LLMUnavailableError if Ollama is down or the model is not pulled.
    Raises httpx.HTTPStatusError if the chat call itself fails (caller handles).
    """
    content = await _chat(system_prompt, user_prompt, max_tokens, temperature, client)
    return content.strip()


async def chat_json(
    system_prompt: str | None,
    user_prompt: str,
    max_tokens: int | None = None,
    temperature: float | None = None,
    client: httpx.AsyncClient | None = None,
) -> Any:
    """
    Send a chat request in Ollama JSON mode and return the parsed reply.

    Raises json.JSONDecodeError if the model returns invalid JSON (caller handles).
    """
    content = await _chat(
        system_prompt, user_prompt, max_tokens, temperature, client, response_format="json"
    )
    return json.loads(content)
