"""
Grading Service

Client for the hosted model that grades a submission by comparing it with
the question's base example. The model is reached through an
OpenAI-compatible chat completions API (Groq by default); the model
variant is picked from a coarse complexity tier.

Example:
    >>> client = GradingClient()
    >>> verdict = await client.assess(
    ...     "var x = 1;", "const x = 1;",
    ...     {"title": "Declare x", "description": "Declare a constant"}, "text",
    ... )
"""

import enum
import logging
import os
from typing import List, Mapping, Optional

import openai
from openai import AsyncOpenAI
from pydantic import AliasChoices, BaseModel, Field, ValidationError

from .prompts import SYSTEM_PROMPT, build_assessment_prompt

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"

# Content length above which a submission moves up a tier
TEXT_LENGTH_THRESHOLD = 1000
DOCUMENT_LENGTH_THRESHOLD = 5000


class GradingServiceError(Exception):
    """Raised when the hosted model cannot produce a usable verdict."""
    pass


class ComplexityTier(enum.Enum):
    """Routing label used to choose the model variant."""
    basic = "basic"
    standard = "standard"
    complex = "complex"
    agentic = "agentic"


def determine_complexity(submission_kind: str, content_length: int = 0) -> ComplexityTier:
    """
    Pick a complexity tier for a submission.

    GitHub repositories are always agentic and websites always standard.
    Documents go complex above DOCUMENT_LENGTH_THRESHOLD characters, text
    goes standard above TEXT_LENGTH_THRESHOLD.
    """
    if submission_kind == "github_repo":
        return ComplexityTier.agentic
    if submission_kind == "document":
        return ComplexityTier.complex if content_length > DOCUMENT_LENGTH_THRESHOLD else ComplexityTier.standard
    if submission_kind == "website":
        return ComplexityTier.standard
    if submission_kind == "text":
        return ComplexityTier.standard if content_length > TEXT_LENGTH_THRESHOLD else ComplexityTier.basic
    return ComplexityTier.basic


class Comparison(BaseModel):
    similarities: List[str] = Field(default_factory=list)
    differences: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class AssessmentVerdict(BaseModel):
    """Structured verdict returned by the model."""
    score: float = Field(..., ge=0, le=100)
    feedback: str
    confidence: float = Field(..., ge=0, le=1)
    comparison: Comparison = Field(
        default_factory=Comparison,
        validation_alias=AliasChoices("comparison", "comparison_data", "comparisonData"),
    )


def parse_verdict(text: Optional[str]) -> AssessmentVerdict:
    """Extract and validate the JSON object in a model reply."""
    if not text:
        raise GradingServiceError("Empty response from grading model")
    start = text.find("{")
    end = text.rfind("}") + 1
    if start == -1 or end <= start:
        raise GradingServiceError("Grading model response contained no JSON object")
    try:
        return AssessmentVerdict.model_validate_json(text[start:end])
    except ValidationError as e:
        raise GradingServiceError(f"Malformed grading response: {e.error_count()} validation error(s)") from e


class GradingClient:
    """
    Async client for the hosted grading model.

    Args:
        api_key: API key for the hosted endpoint (default: GROQ_API_KEY).
        base_url: OpenAI-compatible base URL (default: GROQ_BASE_URL or Groq).
        timeout: Per-request timeout in seconds.
        client: Pre-built AsyncOpenAI client, mainly for tests.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.timeout = timeout or float(os.getenv("GRADING_TIMEOUT_SECONDS", "60"))
        self.models = {
            ComplexityTier.basic: os.getenv("GRADING_MODEL_BASIC", "llama-3.1-8b-instant"),
            ComplexityTier.standard: os.getenv("GRADING_MODEL_ADVANCED", "llama-3.1-70b-versatile"),
            ComplexityTier.complex: os.getenv("GRADING_MODEL_ADVANCED", "llama-3.1-70b-versatile"),
            ComplexityTier.agentic: os.getenv("GRADING_MODEL_ADVANCED", "llama-3.1-70b-versatile"),
        }
        self._client = client or AsyncOpenAI(
            # The SDK refuses to build without a key; calls fail later with an auth error instead
            api_key=api_key or os.getenv("GROQ_API_KEY") or "missing-api-key",
            base_url=base_url or os.getenv("GROQ_BASE_URL", DEFAULT_BASE_URL),
            timeout=self.timeout,
            max_retries=0,
        )

    def model_for(self, tier: ComplexityTier) -> str:
        return self.models[tier]

    async def assess(
        self,
        content: str,
        base_example_content: str,
        question: Mapping[str, Optional[str]],
        submission_kind: str,
        tier: Optional[ComplexityTier] = None,
    ) -> AssessmentVerdict:
        """
        Grade ``content`` against ``base_example_content``.

        Raises:
            GradingServiceError: On timeout, transport or API errors, and on
                replies that are not a valid verdict.
        """
        tier = tier or determine_complexity(submission_kind, len(content))
        model = self.model_for(tier)
        prompt = build_assessment_prompt(content, base_example_content, question, submission_kind)

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,  # Lower temperature for more consistent assessments
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as e:
            raise GradingServiceError(f"Grading model timed out after {self.timeout:g}s") from e
        except openai.APIError as e:
            raise GradingServiceError(f"Grading model request failed: {e}") from e

        if not response.choices:
            raise GradingServiceError("Grading model returned no choices")
        verdict = parse_verdict(response.choices[0].message.content)
        logger.info(f"Graded {submission_kind} submission with {model} ({tier.value}): score={verdict.score}")
        return verdict

    async def health_check(self) -> bool:
        """Make a minimal call to confirm the hosted model responds."""
        try:
            await self._client.chat.completions.create(
                model=self.model_for(ComplexityTier.basic),
                messages=[{"role": "user", "content": 'Say "healthy" if you can respond.'}],
                max_tokens=10,
            )
            return True
        except openai.APIError as e:
            logger.error(f"Grading model health check failed: {e}")
            return False
