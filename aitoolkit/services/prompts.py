"""
Prompt templates for the four operations.

Each builder returns the operation-specific (system, user) pair; the toolkit
then layers base prompt, stored context and additional context on top.
"""
import json
from typing import Any, NamedTuple, Optional


class Messages(NamedTuple):
    system: str
    user: str


def to_json(value: Any) -> str:
    """json.dumps that never fails on non-JSON values (falls back to str())."""
    return json.dumps(value, default=str, ensure_ascii=False)


def extract_prompt(data: Any, schema: Any) -> Messages:
    return Messages(
        system="Extract structured information according to the schema. Return valid JSON.",
        user=(
            f"Data: {to_json(data)}\n\n"
            f"Schema: {to_json(schema)}\n\n"
            "Extract the information and return JSON matching the schema."
        ),
    )


def validate_prompt(criteria: str, subject: Any, reference: Any = None) -> Messages:
    reference_part = f"\n\nReference: {to_json(reference)}" if reference else ""
    return Messages(
        system=(
            "Validate the subject against criteria. "
            "Return JSON with score (0-1), reasoning, and recommendation."
        ),
        user=(
            f"Criteria: {criteria}\n\n"
            f"Subject: {to_json(subject)}{reference_part}\n\n"
            'Return: { score: 0-1, reasoning: "...", confidence: 0-1, '
            'recommendation: "pass/fail/conditional" }'
        ),
    )


def summarize_prompt(content: Any, max_length: int, focus: str) -> Messages:
    return Messages(
        system="Create concise summaries focusing on actionable insights. Return JSON.",
        user=(
            f"Content: {to_json(content)}\n\n"
            f"Create a summary (max {max_length} chars) focusing on {focus}.\n\n"
            'Return: { summary: "...", keyPoints: [...], confidence: 0-1 }'
        ),
    )


def decide_prompt(context: Any, actions: Any) -> Messages:
    return Messages(
        system="Analyze context and choose the best action. Return JSON with your decision.",
        user=(
            f"Context: {to_json(context)}\n\n"
            f"Available actions: {to_json(actions)}\n\n"
            'Return: { action: "chosen_action", reasoning: "...", confidence: 0-1, parameters: {} }'
        ),
    )


def extraction_check_prompt(extracted: Any, schema: Any, original: Any) -> Messages:
    return Messages(
        system="Validate if the extraction was done correctly.",
        user=(
            f"Original: {to_json(original)}\n"
            f"Schema: {to_json(schema)}\n"
            f"Extracted: {to_json(extracted)}\n\n"
            'Is this correct? Return: { "isValid": boolean, "score": 0-1, "issues": [] }'
        ),
    )


def compose_system_prompt(
    system_prompt: str,
    base_prompt: Optional[str] = None,
    context_string: str = "",
    additional_context: Any = None,
) -> str:
    final = f"{base_prompt}\n\n{system_prompt}" if base_prompt else system_prompt

    if context_string:
        final += context_string

    if additional_context:
        if isinstance(additional_context, str):
            final += f"\n\nAdditional context: {additional_context}"
        else:
            final += f"\n\nAdditional context: {to_json(additional_context)}"

    return final
