"""Structured usage logging for AI calls.

One INFO line per AI call. The fields ride along in ``extra`` so a JSON log
formatter can pick them up; this module does not configure one.

Logger name: ``schoolhub.ai.usage``

Tier 2 service: imports only stdlib.
"""

import logging

logger = logging.getLogger("schoolhub.ai.usage")


def log_ai_call(
    *,
    model_id: str,
    prompt_tokens: int,
    completion_tokens: int,
    latency_ms: float,
    student_id: str,
    call_type: str,
    fallback: bool = False,
) -> None:
    """Emits a structured INFO log for a finished AI call.

    Args:
        model_id: The model identifier used for this call.
        prompt_tokens: Input tokens consumed (0 when the call failed).
        completion_tokens: Output tokens generated (0 when the call failed).
        latency_ms: Wall-clock duration of the call in milliseconds.
        student_id: The student the call was made for.
        call_type: What the call was for (e.g. "insights").
        fallback: True when the provider failed and static text was served.
    """
    logger.info(
        "AI call: %s %s tokens_in=%d tokens_out=%d latency=%.0fms student=%s fallback=%s",
        call_type,
        model_id,
        prompt_tokens,
        completion_tokens,
        latency_ms,
        student_id,
        fallback,
        extra={
            "model_id": model_id,
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "latency_ms": latency_ms,
            "student_id": student_id,
            "call_type": call_type,
            "fallback": fallback,
        },
    )
