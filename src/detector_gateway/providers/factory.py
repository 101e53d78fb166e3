"""
detector_gateway.providers.factory

Builds the ordered (primary, fallback) provider pair from settings.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from detector_gateway.providers.anthropic import AnthropicProvider
from detector_gateway.providers.base import ClassificationProvider
from detector_gateway.providers.openai import OpenAIProvider
from detector_gateway.settings import Settings


@dataclass(frozen=True, slots=True)
class ProviderChain:
    primary: ClassificationProvider
    fallback: ClassificationProvider


def build_providers(*, settings: Settings, http: httpx.AsyncClient) -> ProviderChain:
    return ProviderChain(
        primary=OpenAIProvider(settings=settings, http=http),
        fallback=AnthropicProvider(settings=settings, http=http),
    )
