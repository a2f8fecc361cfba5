"""Prompt text for comparing a submission with its base example."""

from typing import Mapping, Optional

SYSTEM_PROMPT = (
    "You are an expert assessment evaluator. You compare student submissions "
    "against a base example (the perfect answer) and reply with JSON only."
)

RESPONSE_FORMAT = """Respond with a single JSON object of this exact shape:
{
  "score": <number 0-100>,
  "feedback": "<constructive feedback explaining the score>",
  "confidence": <number 0-1>,
  "comparison": {
    "similarities": ["<string>", ...],
    "differences": ["<string>", ...],
    "suggestions": ["<string>", ...]
  }
}"""


def build_assessment_prompt(
    submission_content: str,
    base_example_content: str,
    question: Mapping[str, Optional[str]],
    submission_kind: str,
) -> str:
    """Format the user prompt for one grading call."""
    criteria = question.get("criteria")
    criteria_line = f"Assessment Criteria: {criteria}\n" if criteria else ""
    return f"""Your task is to assess a student submission against a base example (perfect answer).

**Question Details:**
Title: {question.get("title") or ""}
Description: {question.get("description") or ""}
{criteria_line}Submission Type: {submission_kind}

**Base Example (Perfect Answer):**
{base_example_content}

**Student Submission:**
{submission_content}

**Assessment Instructions:**
1. Compare the submission against the base example thoroughly
2. Identify specific similarities and differences
3. Provide a score from 0-100 based on how well it matches the base example
4. Give constructive feedback explaining the score
5. Provide your confidence level (0-1) in this assessment
6. Suggest specific improvements to match the base example better

Focus on:
- Content accuracy and completeness compared to base example
- Structure and organization similarity
- Quality of implementation/execution
- Adherence to requirements outlined in the base example
- Areas where the submission deviates from the perfect answer

{RESPONSE_FORMAT}"""
