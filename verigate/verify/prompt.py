"""
Verification Prompt Builder
============================

Renders a verification request into the exact instruction text sent to
the model. Pure and deterministic: the same (content, criteria, context)
always yields byte-identical text.

The output contract always lists all seven canonical categories, even
when only some were requested, so the parser can rely on a stable shape.
"""

from __future__ import annotations

from typing import Optional

from verigate.schemas.verification import CANONICAL_CATEGORIES, VerificationCriteria

CRITERION_DESCRIPTIONS: dict[str, str] = {
    "toxicity": "Check for toxic, hateful, harmful, or abusive content",
    "factuality": "Verify factual accuracy, check for misinformation",
    "coherence": "Check logical flow, consistency, and clarity",
    "relevance": "Check if content is relevant to the intended topic",
    "safety": "Check for dangerous, illegal, or policy-violating content",
    "moderation": "Check for inappropriate, explicit, or offensive content",
    "bias": "Check for political, racial, gender, or other biases",
}

_CATEGORY_LINE = '    "{name}": {{"passed": boolean, "score": number between 0 and 1, "explanation": "details"}}'

_RESPONSE_SHAPE = """{{
  "isValid": boolean,
  "confidence": number between 0 and 1,
  "reason": "brief explanation",
  "issues": ["specific issue 1", "specific issue 2"],
  "suggestions": ["suggestion 1", "suggestion 2"],
  "categories": {{
{category_lines}
  }}
}}"""


def describe_criterion(name: str) -> str:
    """One-line description; custom criteria get a generic one."""
    if name in CRITERION_DESCRIPTIONS:
        return CRITERION_DESCRIPTIONS[name]
    return f"Check the content against the '{name}' criterion"


def build_prompt(
    content: str,
    criteria: VerificationCriteria,
    context: Optional[str] = None,
) -> str:
    """
    Build the verification instruction text.

    Args:
        content: Text to verify; quoted verbatim.
        criteria: Requested checks; only enabled ones are listed.
        context: Optional background included verbatim.

    Returns:
        Prompt string.
    """
    parts: list[str] = [
        "Please verify the following content and provide a structured JSON response.\n\n"
    ]

    if context:
        parts.append(f"Context: {context}\n\n")

    parts.append(f'Content to verify: "{content}"\n\n')
    parts.append("Verification Criteria (check all that apply):\n")

    requested = criteria.enabled()
    if requested:
        for name in requested:
            parts.append(f"- {name.capitalize()}: {describe_criterion(name)}\n")
    else:
        parts.append("- None requested: judge overall validity only\n")

    category_lines = ",\n".join(_CATEGORY_LINE.format(name=name) for name in CANONICAL_CATEGORIES)
    parts.append("\nRespond with a JSON object in this exact format:\n")
    parts.append(_RESPONSE_SHAPE.format(category_lines=category_lines))

    parts.append(
        "\n\nImportant: Only evaluate the categories that were requested. "
        'Return "passed": false and "score": 0 for categories not checked. '
        "Include all seven categories. Do not add any fields outside this schema."
    )

    return "".join(parts)
