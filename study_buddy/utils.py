"""Utilities supporting Study Buddy modules."""

from __future__ import annotations

import inspect
import json
import random
import re
import string
import time
from typing import Any, Iterable, List


_ID_ALPHABET = string.ascii_lowercase + string.digits
_SENTENCE_TERMINATORS = re.compile(r"[.!?]+")


def generate_id(prefix: str, *, size: int = 9) -> str:
    """Generate a readable identifier from a prefix, timestamp and random suffix.

    Uniqueness is best effort: two ids minted in the same millisecond only
    differ by their random suffix and nothing checks them against storage.
    """

    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(size))
    return f"{prefix}_{timestamp_ms()}_{suffix}"


def timestamp_ms() -> int:
    """Return current UTC timestamp in milliseconds."""

    return int(time.time() * 1000)


def canonical_json(payload: Any) -> str:
    """Serialize payload deterministically so equal structures compare equal."""

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)


def unique(items: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        ordered.append(item)
    return ordered


def split_sentences(text: str, *, min_length: int = 10) -> List[str]:
    """Split on sentence terminators and keep stripped sentences longer than min_length."""

    sentences = (part.strip() for part in _SENTENCE_TERMINATORS.split(text or ""))
    return [sentence for sentence in sentences if len(sentence) > min_length]


def capitalize_first(word: str) -> str:
    return word[:1].upper() + word[1:] if word else word


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


async def maybe_await(value: Any) -> Any:
    """Await value when the host handed back an awaitable, else return it."""

    if inspect.isawaitable(value):
        return await value
    return value
