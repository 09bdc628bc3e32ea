"""Deterministic stand-ins used when a capability is missing or fails."""

from __future__ import annotations

import math
import re
from collections import Counter
from typing import List

from .models import ConceptExtraction, ConceptInsight
from .utils import capitalize_first, split_sentences

_NON_WORD = re.compile(r"[^\w\s]|_")

SUMMARY_FALLBACK_CHARS = 240
MAX_FALLBACK_CONCEPTS = 5


def simple_summary(text: str) -> str:
    """Extractive summary built from the leading sentences of ``text``."""

    if not isinstance(text, str) or not text:
        return ""
    sentences = split_sentences(text)
    if not sentences:
        return text[:SUMMARY_FALLBACK_CHARS]
    summary_length = min(3, math.ceil(len(sentences) / 3))
    return ". ".join(sentences[:summary_length]) + "."


def keyword_candidates(text: str, *, limit: int = MAX_FALLBACK_CONCEPTS) -> List[str]:
    """Most frequent words longer than three characters, first-seen order on ties."""

    words = [word for word in _NON_WORD.sub("", (text or "").lower()).split() if len(word) > 3]
    return [word for word, _ in Counter(words).most_common(limit)]


def frequency_concepts(summary: str) -> ConceptExtraction:
    concepts = [capitalize_first(word) for word in keyword_candidates(summary)]
    insights = {concept: ConceptInsight.generic(concept) for concept in concepts}
    return ConceptExtraction(concepts=concepts, insights=insights)
