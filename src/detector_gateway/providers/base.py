"""
detector_gateway.providers.base

Provider boundary shared by every classification backend.

Responsibilities:
- Define the ClassificationProvider protocol the orchestrator calls.
- Validate the verdict a model returns into a closed, typed shape.
- Extract the first-to-last JSON object from free-form model output.
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from detector_gateway.services.validation import Mode

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class ProviderError(Exception):
    """Any failure to obtain a usable verdict from a provider."""


class ProviderParseError(ProviderError):
    pass


class ProviderVerdict(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    classification: Literal["ai-generated", "human-written"]
    confidence_level: Literal["high", "medium", "low"] = Field(alias="confidenceLevel")
    confidence_score: float = Field(alias="confidenceScore", ge=0.0, le=1.0)
    key_indicators: list[str] = Field(default_factory=list, alias="keyIndicators")
    reasoning: str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ClassificationProvider(Protocol):
    name: str

    async def classify(self, *, content: str, mode: Mode) -> ProviderVerdict: ...


def extract_verdict(text: str) -> ProviderVerdict:
    match = _JSON_OBJECT.search(text or "")
    if match is None:
        raise ProviderParseError("No JSON found in response")
    try:
        raw = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ProviderParseError(f"Response JSON is not decodable: {e.msg}") from e
    if not isinstance(raw, dict):
        raise ProviderParseError("Response JSON is not an object")
    if raw.get("keyIndicators") is None:
        raw["keyIndicators"] = []
    try:
        return ProviderVerdict.model_validate(raw)
    except ValidationError as e:
        raise ProviderParseError(f"Response verdict is invalid: {e.error_count()} error(s)") from e


# --- Module Notes -----------------------------------------------------------
# The JSON pattern is greedy: it spans from the first "{" to the
# last "}", so prose before or after the object is tolerated but two objects are not.
