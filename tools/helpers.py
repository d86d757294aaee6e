"""Shared helper functions for tool implementations"""

import logging
import re
from typing import Any, Optional

from errors import ValidationError

logger = logging.getLogger("MCP_Server")

MAX_PROMPT_LENGTH = 500
UNSAFE_PROMPT_CHARS = re.compile(r"[^\w\s.,!?-]")
PROMPT_SUFFIX = "high detailed, complete object, not cut off, white solid background"


def sanitize_prompt(prompt: Any) -> str:
    """Trim, drop anything but word characters and basic punctuation, cap length"""
    if not prompt or not isinstance(prompt, str):
        return ""
    return UNSAFE_PROMPT_CHARS.sub("", prompt.strip())[:MAX_PROMPT_LENGTH]


def validate_prompt(prompt: Any) -> str:
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("Invalid or empty prompt")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValidationError(f"Prompt must be at most {MAX_PROMPT_LENGTH} characters")
    cleaned = sanitize_prompt(prompt)
    if not cleaned.strip():
        raise ValidationError("Invalid or empty prompt")
    return cleaned


def enhance_prompt(prompt: str) -> str:
    return f"{prompt}, {PROMPT_SUFFIX}"


def client_key(ctx: Optional[Any]) -> str:
    if ctx is None:
        return "default"
    try:
        return ctx.client_id or "default"
    except (AttributeError, ValueError):
        # No active request context (tool invoked outside a session).
        return "default"


def begin_request(app, ctx: Optional[Any]):
    """Rate-limit the caller and remember its session for change notifications"""
    app.rate_limiter.enforce(client_key(ctx))
    if ctx is None:
        return
    try:
        session = ctx.session
    except ValueError:
        return
    app.notifier.register(session)
