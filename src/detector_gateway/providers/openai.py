"""
detector_gateway.providers.openai

Primary classification provider (OpenAI chat completions).

Responsibilities:
- Build the chat-completions request for a given mode.
- Parse `choices[0].message.content` and hand it to the shared verdict extractor.
"""

from __future__ import annotations

from typing import Any

import httpx

from detector_gateway.providers.base import ProviderError, ProviderParseError, ProviderVerdict, extract_verdict
from detector_gateway.providers.prompts import SYSTEM_PROMPT, build_prompt
from detector_gateway.services.validation import Mode
from detector_gateway.settings import Settings


class OpenAIProvider:
    name = "openai"

    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._http = http
        self._url = settings.openai_base_url.rstrip("/") + "/chat/completions"
        self._api_key = settings.openai_api_key
        self._model = settings.openai_model
        self._max_tokens = settings.provider_max_tokens

    async def classify(self, *, content: str, mode: Mode) -> ProviderVerdict:
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(content, mode)},
            ],
            "temperature": 0.1,
            "max_tokens": self._max_tokens,
        }
        try:
            r = await self._http.post(
                self._url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=body,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"OpenAI transport error: {e.__class__.__name__}") from e
        if r.status_code != 200:
            raise ProviderError(f"OpenAI API error: {r.status_code}")
        try:
            data = r.json()
        except ValueError as e:
            raise ProviderParseError("OpenAI response is not JSON") from e
        return extract_verdict(parse_completion(data))


def parse_completion(data: Any) -> str:
    try:
        text = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise ProviderParseError("Invalid response from OpenAI") from None
    if not isinstance(text, str) or not text:
        raise ProviderParseError("Invalid response from OpenAI")
    return text
