"""
Inference providers that propose replacement locators.

A provider receives the failed locator plus a page-context snapshot and returns
a LocatorCandidate, or None when it has nothing usable. Providers never raise
for bad model output.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Optional

import litellm
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..core.logging_config import get_healing_logger
from ..core.models.healing_models import (
    LocatorCandidate,
    LocatorGenerationRequest,
    LocatorStrategy
)

logger = get_healing_logger("inference")

ACCESSIBILITY_TREE_MAX_CHARS = 4000
HTML_SNIPPETS_MAX_CHARS = 6000

SYSTEM_PROMPT = """You are a senior web automation engineer who repairs broken element locators.
When a locator no longer matches, propose a replacement that is stable and matches exactly the intended element.

Respond with a single JSON object:
{
  "locator": "string - the new locator expression",
  "strategy": "CSS|XPATH|TEXT|DATA_TESTID - the locator strategy",
  "confidence": "number - confidence level 0-100",
  "reasoning": "string - brief explanation of the approach"
}"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def build_generation_prompt(request: LocatorGenerationRequest) -> str:
    """
    Build the user prompt for a locator generation request.

    Args:
        request: Failed locator, failure details and page context

    Returns:
        Prompt text with the context truncated to fixed budgets
    """
    context = request.context
    snippets = "\n\n".join(
        f"--- Snippet {index} ---\n{html}"
        for index, html in enumerate(context.relevant_html, start=1)
    )[:HTML_SNIPPETS_MAX_CHARS]

    return f"""FAILED LOCATOR ANALYSIS:

Original Locator: {request.original_locator}
Error: {request.failure_reason or "Element not found"}
Element Description: {request.element_description or "Not provided"}

PAGE CONTEXT:
Title: {context.page_title}
URL: {context.url}

ACCESSIBILITY TREE:
{context.accessibility_tree[:ACCESSIBILITY_TREE_MAX_CHARS]}

RELEVANT HTML SNIPPETS:
{snippets}

TASK:
1. Use the accessibility tree to work out which element the original locator targeted (role, label, text, position).
2. Consider why it broke: renamed attributes, changed tags, dynamic values or layout changes.
3. Find that element in the HTML snippets. Roles may map to different tags (role="button" can be an <input> or a <div>).
4. Write a locator that matches only that element, using tags, classes and attributes present in the HTML.

Prefer, in order: id, name, data-testid, aria-label and role; visible text or title; a stable parent
followed by the child; static CSS classes; tag plus attribute combinations such as input[type='submit'].
Avoid absolute XPath, index-based selectors, generated ids and selectors tied to layout.

Use XPATH when the original was XPath or when text matching or DOM relationships are needed.
Use CSS when one or two stable attributes are enough.

Generate the most reliable locator now:"""


class CandidatePayload(BaseModel):
    """Schema of the JSON object a model must return."""

    locator: str = Field(min_length=1)
    strategy: LocatorStrategy
    confidence: Optional[float] = None
    reasoning: Optional[str] = None

    @field_validator("locator")
    @classmethod
    def strip_locator(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("locator must not be blank")
        return v

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v):
        if isinstance(v, str):
            return v.strip().upper().replace("-", "_")
        return v

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None:
            return 0.0
        return max(0.0, min(100.0, v))

    def to_candidate(self) -> LocatorCandidate:
        return LocatorCandidate(
            locator=self.locator,
            strategy=self.strategy,
            confidence=self.confidence,
            reasoning=self.reasoning
        )


def parse_candidate(response_text: Optional[str]) -> Optional[LocatorCandidate]:
    """Decode a model response into a LocatorCandidate, or None if it is unusable."""
    if not response_text or not response_text.strip():
        logger.error("Empty response from inference provider")
        return None

    text = _CODE_FENCE.sub("", response_text.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"Inference response is not valid JSON: {e}")
        return None

    if not isinstance(data, dict):
        logger.error("Inference response is not a JSON object")
        return None

    try:
        return CandidatePayload.model_validate(data).to_candidate()
    except ValidationError as e:
        logger.error(f"Invalid response format from inference provider: {e.error_count()} error(s)")
        return None


class InferenceProvider(ABC):
    """Interface for services that propose replacement locators."""

    @abstractmethod
    async def generate(self, request: LocatorGenerationRequest) -> Optional[LocatorCandidate]:
        """
        Propose a replacement locator.

        Args:
            request: Locator generation request with page context

        Returns:
            LocatorCandidate, or None when no usable candidate was produced
        """
        pass


class LiteLLMInferenceProvider(InferenceProvider):
    """Inference provider backed by any chat model reachable through LiteLLM."""

    def __init__(self, model: str, api_key: Optional[str] = None, temperature: float = 0.1,
                 max_tokens: int = 500, timeout: Optional[float] = None):
        """
        Initialize the provider.

        Args:
            model: Model identifier, passed to LiteLLM unchanged
            api_key: Credential for the model provider
            temperature: Sampling temperature
            max_tokens: Completion token limit
            timeout: Request timeout in seconds
        """
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    async def generate(self, request: LocatorGenerationRequest) -> Optional[LocatorCandidate]:
        prompt = build_generation_prompt(request)
        logger.log_api_call(self.model)

        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt}
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                api_key=self.api_key,
                timeout=self.timeout
            )
        except Exception as e:
            logger.error(f"Inference API call failed: {e}")
            return None

        if not response.choices:
            logger.error("Inference response contained no choices")
            return None

        candidate = parse_candidate(response.choices[0].message.content)
        if candidate is not None:
            logger.log_generation(request.original_locator, candidate.locator, candidate.strategy.value)
        return candidate
