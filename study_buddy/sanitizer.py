"""Cleanup and never-raising parsing of model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OPENING_FENCE = re.compile(r"^```(?:json(?![\w+-])|[\w+-]+(?=\s))?[ \t]*\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\n?```\s*$")


def sanitize(raw: Any) -> Optional[str]:
    """Strip whitespace and surrounding code fences from a model response."""

    if not isinstance(raw, str) or not raw.strip():
        return None
    cleaned = raw.strip()
    cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_json(text: Optional[str], fallback: Union[T, Callable[[], T]] = None) -> Any:
    """Parse JSON text, returning ``fallback`` on any failure.

    A callable fallback is only invoked when parsing actually fails.
    """

    try:
        return json.loads(text)  # type: ignore[arg-type]
    except (TypeError, ValueError, RecursionError) as exc:
        logger.warning("Model output is not valid JSON: %s", exc)
        return fallback() if callable(fallback) else fallback
