"""Critical reading helpers: page red flags and constructive rewrites."""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from pydantic import ValidationError

from .manager import CapabilityManager
from .models import PageAnalysis
from .payloads import RedFlagPayload
from .sanitizer import parse_json, sanitize

logger = logging.getLogger(__name__)

MAX_PAGE_CHARS = 60000

EMOTIONAL_WORDS = (
    "shocking", "unbelievable", "disaster", "scandal", "ruined", "destroyed", "furious", "rage",
    "terrified", "panic", "urgent", "now", "immediately", "must", "exposed", "secret", "banned",
    "outrage", "humiliated", "crushed",
)
CLICKBAIT_PHRASES = (
    "you won't believe", "what happens next", "before it's too late", "the truth about",
    "nobody talks about", "shocking truth", "goes viral", "breaks the internet", "mind-blowing",
    "jaw-dropping", "click here", "free!!!",
)
INSULTS = ("idiot", "stupid", "dumb", "trash", "garbage", "shut up", "hate you", "loser", "moron", "worthless")

HEURISTIC_QUESTIONS = [
    "What specific evidence or sources back these claims?",
    "Is the language trying to trigger a strong emotion?",
    "What might be the author's goal in sharing this?",
]
DEFAULT_QUESTIONS = [
    "What evidence supports the main claims?",
    "Is the language emotional or neutral?",
    "Can you find a source with an opposing view?",
]

RED_FLAG_PROMPT = """Based on the following summary of a webpage, identify potential red flags for a young user.
Red flags include: strong emotional language (fear, anger), urgent calls to action, claims without evidence, or a heavily biased perspective.
Then, generate exactly 3 short, simple critical thinking questions to help the user evaluate the content.
Return the response as a JSON object with two keys: "hasRedFlags" (boolean) and "questions" (an array of strings).

Summary: "{summary}\""""

TONE_PROMPT = "Is this text aggressive or non-constructive? Respond YES or NO.\n\n{text}"

_EXCLAMATION_RUNS = re.compile(r"!+")
_SHOUTING = re.compile(r"\b[A-Z]{4,}\b")
_REPLACEMENTS = [
    (re.compile(r"\bidiot\b", re.IGNORECASE), "person"),
    (re.compile(r"\bstupid\b", re.IGNORECASE), "unhelpful"),
    (re.compile(r"\bdumb\b", re.IGNORECASE), "not clear"),
    (re.compile(r"\btrash\b", re.IGNORECASE), "not useful"),
    (re.compile(r"\bgarbage\b", re.IGNORECASE), "not accurate"),
    (re.compile(r"\bmoron\b", re.IGNORECASE), "person"),
    (re.compile(r"\bworthless\b", re.IGNORECASE), "not helpful"),
]
_SOFTENED = re.compile(r"^\s*(i\s+(feel|think|suggest|believe)|let's)\b", re.IGNORECASE)


def heuristic_page_analysis(text: str) -> PageAnalysis:
    lower = (text or "").lower()
    emotional = sum(1 for word in EMOTIONAL_WORDS if word in lower)
    clickbait = sum(1 for phrase in CLICKBAIT_PHRASES if phrase in lower)
    exclamations = len(_EXCLAMATION_RUNS.findall(text or ""))
    shouting = len(_SHOUTING.findall(text or ""))
    score = emotional + clickbait + (1 if exclamations > 2 else 0) + (1 if shouting > 5 else 0)
    return PageAnalysis(has_red_flags=score >= 2, questions=list(HEURISTIC_QUESTIONS))


def is_aggressive(text: str) -> bool:
    lower = text.lower()
    return (
        any(insult in lower for insult in INSULTS)
        or len(_EXCLAMATION_RUNS.findall(text)) > 2
        or len(_SHOUTING.findall(text)) > 2
    )


def constructive_rewrite(text: str) -> str:
    """Rule-based rewrite toward calmer, first-person phrasing."""

    out = text
    for pattern, replacement in _REPLACEMENTS:
        out = pattern.sub(replacement, out)
    out = re.sub(r"!{2,}", "!", out)
    out = re.sub(r"\?{2,}", "?", out)
    out = _SHOUTING.sub(lambda match: match.group(0).capitalize(), out)
    out = re.sub(r"\byou\s+are\b", "I feel", out, flags=re.IGNORECASE)
    out = re.sub(r"\byou\s+should\b", "I suggest we", out, flags=re.IGNORECASE)
    if not _SOFTENED.match(out):
        out = f"I think {out[:1].lower()}{out[1:]}"
    return out.strip()


class PageAnalyzer:
    """Flags manipulative pages and proposes critical thinking questions."""

    def __init__(self, manager: CapabilityManager) -> None:
        self.manager = manager

    async def analyze(self, page_text: str) -> PageAnalysis:
        truncated = (page_text or "").strip()[:MAX_PAGE_CHARS]
        analysis = await self._model_analysis(truncated) or heuristic_page_analysis(truncated)
        if not analysis.questions:
            analysis.questions = list(DEFAULT_QUESTIONS)
        return analysis

    async def _model_analysis(self, text: str) -> Optional[PageAnalysis]:
        if not text:
            return None
        summarizer = await self.manager.ensure_summarizer({"length": "short"})
        if summarizer is None:
            return None
        summary = await self.manager.summarize(text, length="short")
        response = await self.manager.prompt(RED_FLAG_PROMPT.format(summary=summary))
        if response is None:
            return None
        parsed = parse_json(sanitize(response), None)
        if not isinstance(parsed, dict):
            logger.info("Red flag analysis returned unusable output, using heuristics")
            return None
        try:
            payload = RedFlagPayload.model_validate(parsed)
        except ValidationError as exc:
            logger.info("Red flag payload failed validation: %s", exc.error_count())
            return None
        return PageAnalysis(has_red_flags=payload.has_red_flags, questions=payload.questions)


class CommunicationAssistant:
    """Suggests a constructive rewrite for aggressive messages."""

    def __init__(self, manager: CapabilityManager) -> None:
        self.manager = manager

    async def suggest_rewrite(self, text: str) -> Optional[str]:
        message = (text or "").strip()
        if not message:
            return None

        verdict = await self.manager.prompt(TONE_PROMPT.format(text=message))
        if verdict is not None and verdict.strip().upper() == "YES":
            rewritten = await self.manager.rewrite_content(message, tone="more-casual")
            if rewritten.strip() and rewritten.strip() != message:
                return rewritten.strip()

        if not is_aggressive(message):
            return None
        return constructive_rewrite(message)
