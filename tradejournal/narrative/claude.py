"""Thin wrapper around the Anthropic Messages API."""

from __future__ import annotations

import base64
import logging
import os
import re
import time
from typing import Any, Callable, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

ANALYSIS_MODEL = "claude-sonnet-4-20250514"
FAST_MODEL = "claude-haiku-4-5-20251001"

_DATA_URL_RE = re.compile(r"^data:(?P<media>image/[a-z0-9.+-]+);base64,(?P<data>.*)$", re.IGNORECASE | re.DOTALL)

T = TypeVar("T")


def get_api_key(api_key: Optional[str] = None) -> Optional[str]:
    return api_key or os.environ.get("ANTHROPIC_API_KEY")


def call_claude(
    api_key: str,
    content: Union[str, list[dict[str, Any]]],
    system_prompt: Optional[str] = None,
    model: str = ANALYSIS_MODEL,
    max_tokens: int = 2000,
) -> str:
    """Make the actual API call to Claude and return the text of the reply."""
    import anthropic

    client = anthropic.Anthropic(api_key=api_key)
    kwargs: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": content}],
    }
    if system_prompt:
        kwargs["system"] = system_prompt

    message = client.messages.create(**kwargs)
    return message.content[0].text.strip()


def with_retry(fn: Callable[[], T], label: str, attempts: int = 2, pause: float = 2.0) -> T:
    """Run ``fn``; on failure retry once after a short pause, then re-raise."""
    for attempt in range(attempts):
        try:
            return fn()
        except Exception as e:
            logger.warning("%s failed (attempt %d): %s", label, attempt + 1, e)
            if attempt == attempts - 1:
                raise
            time.sleep(pause)
    raise RuntimeError("unreachable")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        start = 1 if lines[0].startswith("```") else 0
        end = -1 if lines[-1].strip() == "```" else len(lines)
        text = "\n".join(lines[start:end]).strip()
    return text


def image_block(image: Union[bytes, str], default_media_type: str = "image/png") -> dict[str, Any]:
    """Build an image content block from raw bytes, a data URL, or bare base64."""
    if isinstance(image, bytes):
        data = base64.standard_b64encode(image).decode("utf-8")
        media_type = default_media_type
    else:
        m = _DATA_URL_RE.match(image.strip())
        if m:
            media_type = m.group("media").lower().replace("image/jpg", "image/jpeg")
            data = m.group("data").strip()
        else:
            media_type = default_media_type
            data = image.strip()

    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }


def is_image_data_url(value: Optional[str]) -> bool:
    return bool(value) and _DATA_URL_RE.match(value.strip()) is not None
