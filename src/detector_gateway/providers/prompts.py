"""
detector_gateway.providers.prompts

Prompt templates for the two analysis modes.
"""

from __future__ import annotations

from detector_gateway.services.validation import Mode

SYSTEM_PROMPT = (
    "You are an expert at detecting AI-generated content. Analyze the provided text and "
    "determine if it was written by AI or a human."
)

_QUICK = """Analyze the following text and determine if it was written by AI or a human. Provide your response in this exact JSON format:

{{
  "classification": "ai-generated" or "human-written",
  "confidenceLevel": "high", "medium", or "low",
  "confidenceScore": 0.0 to 1.0,
  "keyIndicators": ["indicator1", "indicator2"],
  "reasoning": "Brief explanation of your decision"
}}

Text to analyze:
{text}"""

_DEEP = """Perform a comprehensive analysis of the following text to determine if it was written by AI or a human. Consider multiple factors including writing style, complexity, consistency, and common AI patterns. Provide your response in this exact JSON format:

{{
  "classification": "ai-generated" or "human-written",
  "confidenceLevel": "high", "medium", or "low",
  "confidenceScore": 0.0 to 1.0,
  "keyIndicators": ["detailed indicator 1", "detailed indicator 2", "detailed indicator 3"],
  "reasoning": "Detailed explanation of your analysis including specific patterns, writing characteristics, and evidence that led to your conclusion"
}}

Text to analyze:
{text}"""


def build_prompt(content: str, mode: Mode) -> str:
    template = _QUICK if mode == "quick" else _DEEP
    return template.format(text=content)
