"""OpenAI integration for the companion chat and daily journal prompts."""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional

from openai import APIError, OpenAI

from .config import CONFIG

logger = logging.getLogger(__name__)

COMPANION_FALLBACK = (
    "I'm experiencing some technical difficulties right now, but I'm still here for you. "
    "Please try again in a moment, or if this is urgent, consider reaching out to one of our expert doulas."
)
EMPTY_REPLY_FALLBACK = "I'm here to support you. Could you tell me more about what's on your mind?"
JOURNAL_PROMPT_FALLBACK = "What are three things you're grateful for today during your pregnancy journey?"

COMPANION_PROMPT = """
You are Nia, a compassionate and knowledgeable AI doula. You offer emotional support, guidance and
information to expecting and new mothers at any hour.

How you respond:
  - Warm and empathetic; validate feelings before offering ideas.
  - Evidence-based and medically careful. Encourage contacting a healthcare provider for anything
    that sounds like a medical concern, and say plainly when to seek urgent care.
  - Practical: give one or two concrete things to try.
  - Personal: use the mother's stage and today's check-in when they are provided.
      * feeling "anxious" or "overwhelmed": offer a calming technique and reassurance.
      * feeling "tired" or "in-pain": validate, suggest rest, and point to their provider for pain.
      * feeling "excited" or "peaceful": share in it.
  - Conversational, short paragraphs separated by blank lines.
"""

JOURNAL_PROMPT_INSTRUCTIONS = """
Generate a brief journaling prompt for an expecting or new mother.

Requirements:
  - ONE simple question only, at most 15 words.
  - Correct grammar and punctuation.
  - No greetings or extra words.
  - About her current experience.

Examples:
  "How are you feeling about your changing body this week?"
  "What's bringing you joy in your pregnancy today?"

Return ONLY the question.
"""


@lru_cache
def _client() -> Optional[OpenAI]:
    if not CONFIG.openai_api_key:
        logger.info("OpenAI API key not configured; companion replies use the fallback text")
        return None
    return OpenAI(api_key=CONFIG.openai_api_key)


def _format_context(context: Optional[Dict[str, Any]]) -> Optional[str]:
    if not context:
        return None
    check_in = context.get("today_check_in") or {}
    if check_in:
        check_in_line = (
            f"feeling {check_in.get('feeling', 'unknown')}, "
            f"self-care {check_in.get('body_care', 'unknown')}, "
            f"feels supported {check_in.get('feeling_supported', 'unknown')}"
        )
    else:
        check_in_line = "Not completed yet"
    lines = [
        "User context:",
        f"- Pregnancy week: {context.get('pregnancy_week') or 'Unknown'}",
        f"- Pregnancy stage: {context.get('pregnancy_stage') or 'Unknown'}",
        f"- Postpartum: {'Yes' if context.get('is_postpartum') else 'No'}",
        f"- Today's check-in: {check_in_line}",
    ]
    return "\n".join(lines)


def _create_completion(messages: List[Dict[str, str]], *, max_tokens: int, temperature: float) -> Optional[str]:
    """Return the first choice's text, or None when the service is unavailable."""
    client = _client()
    if client is None:
        return None
    try:
        response = client.chat.completions.create(
            model=CONFIG.openai_model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )
    except APIError as exc:
        logger.exception("OpenAI chat API failed, falling back to static text", exc_info=exc)
        return None

    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, KeyError) as exc:
        logger.exception("Unexpected OpenAI response format, falling back to static text", exc_info=exc)
        return None
    return content.strip() if isinstance(content, str) else None


def get_companion_reply(message: str, context: Optional[Dict[str, Any]] = None) -> str:
    system_prompt = COMPANION_PROMPT
    context_block = _format_context(context)
    if context_block:
        system_prompt = f"{COMPANION_PROMPT}\n{context_block}"
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": message},
    ]
    try:
        content = _create_completion(messages, max_tokens=500, temperature=0.7)
    except Exception as exc:  # noqa: BLE001 - chat must always answer
        logger.exception("Companion reply failed, falling back to static text", exc_info=exc)
        return COMPANION_FALLBACK
    if content is None:
        return COMPANION_FALLBACK
    return content or EMPTY_REPLY_FALLBACK


_QUOTES = re.compile(r"^[\"'“‘]|[\"'”’]$")
_GREETING = re.compile(r"^(hello|hi|hey)\b,?\s*[^,?.!]*,\s*", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def clean_journal_prompt(raw: str) -> str:
    cleaned = _QUOTES.sub("", raw.strip())
    cleaned = _GREETING.sub("", cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    if not cleaned:
        return JOURNAL_PROMPT_FALLBACK
    if not cleaned.endswith((".", "!", "?")):
        cleaned += "?"
    return cleaned


def generate_journal_prompt(
    pregnancy_week: Optional[int] = None,
    pregnancy_stage: Optional[str] = None,
    is_postpartum: bool = False,
) -> str:
    context = (
        "Context:\n"
        f"- Pregnancy week: {pregnancy_week or 'Unknown'}\n"
        f"- Pregnancy stage: {pregnancy_stage or 'Unknown'}\n"
        f"- Postpartum: {'Yes' if is_postpartum else 'No'}\n"
    )
    messages = [
        {"role": "system", "content": f"{JOURNAL_PROMPT_INSTRUCTIONS}\n{context}"},
        {"role": "user", "content": "Generate a journal prompt for today."},
    ]
    try:
        content = _create_completion(messages, max_tokens=30, temperature=0.8)
    except Exception as exc:  # noqa: BLE001 - journaling must always get a prompt
        logger.exception("Journal prompt generation failed, using the default prompt", exc_info=exc)
        return JOURNAL_PROMPT_FALLBACK
    if not content:
        return JOURNAL_PROMPT_FALLBACK
    return clean_journal_prompt(content)
