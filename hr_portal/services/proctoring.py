"""
services/proctoring.py

AI review of webcam frames (multimodal vision).
Public API:
  - analyze_frame(b64_jpeg, client=None, sensitivity="Moderate") -> FrameAnalysis
  - make_client(api_key) -> Optional[OpenAI]

Design principles:
- One JPEG frame per call, JSON-object response {isViolation, reason}
- Rate limits and transient API errors retried with exponential backoff
- Fail-open: any final failure returns "no violation", a flaky AI service
  must never cost a candidate a penalty
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from openai import OpenAI, RateLimitError, APIError

from config import OPENAI_API_KEY, VISION_MODEL_NAME

logger = logging.getLogger(__name__)

ANALYSIS_FAILED = "Analysis failed."


@dataclass(frozen=True)
class FrameAnalysis:
    is_violation: bool
    reason: str


# ── OpenAI client ────────────────────────────────────────────────────────────

def make_client(api_key: str = OPENAI_API_KEY) -> Optional[OpenAI]:
    """Create an OpenAI client from the API key."""
    if not api_key:
        logger.warning("No OpenAI API key configured; AI proctoring will fail open.")
        return None
    try:
        return OpenAI(api_key=api_key)
    except Exception as e:
        logger.error(f"OpenAI client initialisation failed: {e}")
        return None


# ── Constants ────────────────────────────────────────────────────────────────
_MAX_API_RETRIES = 3
_BACKOFF_BASE = 1.0
_RATE_LIMIT_MAX_RETRIES = 5
_RATE_LIMIT_BACKOFF_BASE = 2.0

_SENSITIVITY_NOTES = {
    "Strict": "Flag any of these the moment it is visible.",
    "Moderate": "Be strict but fair.",
    "Lenient": "Only flag clear, unambiguous breaches; give the benefit of the doubt.",
}


# ══════════════════════════════════════════════════════════════════════════════
# Public API
# ══════════════════════════════════════════════════════════════════════════════

def analyze_frame(
    b64_jpeg: str,
    client: Optional[OpenAI] = None,
    sensitivity: str = "Moderate",
) -> FrameAnalysis:
    """
    Webcam frame (base64 JPEG) -> FrameAnalysis.

    Never raises for service failures: a missing client, an API error after
    retries or an unparseable reply all come back as a non-violation.
    """
    if client is None:
        client = make_client()
    if client is None or not b64_jpeg:
        return FrameAnalysis(False, ANALYSIS_FAILED)

    user_content: list = [
        {"type": "text", "text": "Analyze this webcam frame from an online exam for violations."},
        {
            "type": "image_url",
            "image_url": {
                "url": f"data:image/jpeg;base64,{b64_jpeg}",
                "detail": "low",
            },
        },
    ]

    raw = _call_openai(_build_system_prompt(sensitivity), user_content, client)
    if raw is None:
        return FrameAnalysis(False, ANALYSIS_FAILED)

    result = _parse_analysis(raw)
    if result is None:
        logger.warning(f"Unparseable proctoring reply: {raw[:200]!r}")
        return FrameAnalysis(False, ANALYSIS_FAILED)
    return result


# ══════════════════════════════════════════════════════════════════════════════
# Internals
# ══════════════════════════════════════════════════════════════════════════════

def _build_system_prompt(sensitivity: str) -> str:
    return (
        "You are an AI proctor for an online exam. Analyze the user's webcam image for "
        "potential cheating.\n"
        "Your response must be a JSON object: {\"isViolation\": boolean, \"reason\": string}.\n"
        "\n"
        "Rules to check for:\n"
        "1. Multiple People: Is there more than one person clearly visible?\n"
        "2. User Absent: Is the primary user not in the frame or completely obscured?\n"
        "3. Looking Away: Is the user clearly looking away from the screen (e.g., to the side "
        "or down at a lap)? A quick glance is not a violation.\n"
        "4. Prohibited Items: Is the user holding or looking at a phone, book, or other "
        "unauthorized materials?\n"
        "\n"
        "If any rule is broken, set 'isViolation' to true and provide a concise 'reason'.\n"
        "If all rules are followed, set 'isViolation' to false and 'reason' to 'Secure'. "
        + _SENSITIVITY_NOTES.get(sensitivity, _SENSITIVITY_NOTES["Moderate"])
    )


def _parse_analysis(raw_response: str) -> Optional[FrameAnalysis]:
    """LLM JSON -> FrameAnalysis. None when the reply is not usable."""
    cleaned = _clean_json_response(raw_response)
    if not cleaned:
        return None
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    is_violation = data.get("isViolation", False)
    if not isinstance(is_violation, bool):
        is_violation = str(is_violation).strip().lower() == "true"
    reason = str(data.get("reason") or "No specific reason provided.").strip()
    return FrameAnalysis(is_violation, reason)


def _clean_json_response(response_text: str) -> str:
    """Extract the bare JSON from an LLM reply."""
    if not response_text:
        return ""

    text = re.sub(r"```(?:json)?\s*", "", response_text, flags=re.IGNORECASE)
    text = re.sub(r"```", "", text)
    text = text.strip()

    if text.startswith("{"):
        return text

    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        return match.group(0).strip()

    return ""


def _call_openai(
    system_prompt: str,
    user_content: str | list,
    client: OpenAI,
    max_retries: int = _MAX_API_RETRIES,
) -> Optional[str]:
    """OpenAI Chat API call with exponential backoff. None after the last failure."""
    last_exception: Optional[Exception] = None
    effective_retries = max_retries
    attempt = 0

    while attempt < effective_retries:
        attempt += 1
        try:
            response = client.chat.completions.create(
                model=VISION_MODEL_NAME,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=0.0,
                response_format={"type": "json_object"},
                max_tokens=200,
            )
            return response.choices[0].message.content
        except RateLimitError as e:
            last_exception = e
            effective_retries = max(effective_retries, _RATE_LIMIT_MAX_RETRIES)
            if attempt < effective_retries:
                wait = _RATE_LIMIT_BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning(f"Rate limited, retrying in {wait:.1f}s ({attempt}/{effective_retries})")
                time.sleep(wait)
            else:
                logger.error("Rate limit retries exhausted.")
                break
        except APIError as e:
            last_exception = e
            error_str = str(e).lower()
            is_transient = any(
                k in error_str
                for k in ("timeout", "connection", "unavailable")
            )
            if getattr(e, "status_code", None) in (500, 502, 503, 504):
                is_transient = True
            if attempt < effective_retries and is_transient:
                wait = _BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning(f"API error, retrying in {wait:.1f}s ({attempt}/{effective_retries})")
                time.sleep(wait)
            else:
                logger.error(f"API error: {e}")
                break
        except Exception as e:
            last_exception = e
            logger.error(f"Unexpected error: {type(e).__name__}: {e}")
            break

    logger.warning(f"Frame analysis failed, failing open: {last_exception}")
    return None
