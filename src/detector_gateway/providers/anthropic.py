"""
detector_gateway.providers.anthropic

Fallback classification provider (Anthropic messages API).
"""

from __future__ import annotations

from typing import Any

import httpx

from detector_gateway.providers.base import ProviderError, ProviderParseError, ProviderVerdict, extract_verdict
from detector_gateway.providers.prompts import build_prompt
from detector_gateway.services.validation import Mode
from detector_gateway.settings import Settings


class AnthropicProvider:
    name = "anthropic"

    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._http = http
        self._url = settings.anthropic_base_url.rstrip("/") + "/messages"
        self._api_key = settings.anthropic_api_key
        self._model = settings.anthropic_model
        self._version = settings.anthropic_version
        self._max_tokens = settings.provider_max_tokens

    async def classify(self, *, content: str, mode: Mode) -> ProviderVerdict:
        try:
            r = await self._http.post(
                self._url,
                headers={"x-api-key": self._api_key, "anthropic-version": self._version},
                json={
                    "model": self._model,
                    "max_tokens": self._max_tokens,
                    "messages": [{"role": "user", "content": build_prompt(content, mode)}],
                },
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Anthropic transport error: {e.__class__.__name__}") from e
        if r.status_code != 200:
            raise ProviderError(f"Anthropic API error: {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise ProviderParseError("Anthropic response is not JSON") from e
        return extract_verdict(parse_message(data))


def parse_message(data: Any) -> str:
    # Only the first content block is read; tool-use blocks are never requested.
    try:
        block = data["content"][0]
        text = block["text"]
    except (KeyError, IndexError, TypeError):
        raise ProviderParseError("Invalid response from Anthropic") from None
    if not isinstance(text, str) or not text:
        raise ProviderParseError("Invalid response from Anthropic")
    return text


# --- Module Notes -----------------------------------------------------------
# Authentication uses the `x-api-key` header expected by the messages API.
