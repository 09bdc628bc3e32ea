import asyncio
import re

import pytest

from study_buddy.config import StudyBuddyConfig
from study_buddy.heuristics import frequency_concepts, keyword_candidates, simple_summary
from study_buddy.models import Upgradable
from study_buddy.options import LanguagePreferences, RewriterConfig, SummarizerConfig, TranslatorConfig
from study_buddy.utils import canonical_json, generate_id, split_sentences, truncate


def test_generate_id_shape():
    identifier = generate_id("quiz")
    assert re.fullmatch(r"quiz_\d+_[a-z0-9]{9}", identifier)
    assert generate_id("quiz") != identifier


def test_canonical_json_ignores_key_order():
    assert canonical_json({"b": 1, "a": [1, {"y": 2, "x": 1}]}) == canonical_json({"a": [1, {"x": 1, "y": 2}], "b": 1})


def test_split_sentences_and_truncate():
    assert split_sentences("Short. This one is long enough! And this one too?") == [
        "This one is long enough",
        "And this one too",
    ]
    assert truncate("abcdefghij", 8) == "abcde..."
    assert truncate("abc", 8) == "abc"


def test_simple_summary_keeps_leading_sentences():
    text = ". ".join(f"Sentence number {index} carries detail" for index in range(9)) + "."
    assert simple_summary(text) == (
        "Sentence number 0 carries detail. Sentence number 1 carries detail. Sentence number 2 carries detail."
    )


def test_keyword_candidates_order_and_limit():
    assert keyword_candidates("Cells cells CELLS divide; divide! grow_fast tiny a an") == ["cells", "divide", "growfast", "tiny"]
    extraction = frequency_concepts("Enzymes speed reactions. Enzymes lower activation energy.")
    assert extraction.concepts[0] == "Enzymes"


def test_session_config_identity():
    preferences = LanguagePreferences(input=["en", "es"])
    first = SummarizerConfig.from_options({"length": "short", "shared_context": "biology"}, preferences)
    second = SummarizerConfig.from_options({"length": "short", "shared_context": "chemistry"}, preferences)
    assert first == second
    assert first.cache_key() == second.cache_key()
    assert first.availability_options()["expectedInputLanguages"] == ["en", "es"]
    assert first.create_options()["sharedContext"] == "biology"
    assert SummarizerConfig.from_options({"length": "long"}, preferences).cache_key() != first.cache_key()


def test_rewriter_defaults_and_translator_pair():
    rewriter = RewriterConfig.from_options(None, LanguagePreferences())
    assert (rewriter.kind, rewriter.tone, rewriter.length) == ("rewriter", "more-formal", "as-is")
    assert TranslatorConfig(target_language="EN").pair_key == "auto->en"
    assert TranslatorConfig(target_language="en", source_language="fr").availability_options() == {
        "targetLanguage": "en",
        "sourceLanguage": "fr",
    }


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("STUDY_BUDDY_INPUT_LANGUAGES", "en, es ,")
    monkeypatch.setenv("STUDY_BUDDY_QUESTION_COUNT", "8")
    monkeypatch.setenv("STUDY_BUDDY_LOG_LEVEL", "debug")
    monkeypatch.delenv("STUDY_BUDDY_DB_PATH", raising=False)
    config = StudyBuddyConfig.from_env()
    assert config.input_languages == ["en", "es"]
    assert config.question_count == 8
    assert config.log_level == "DEBUG"
    assert config.db_path == ":memory:"


@pytest.mark.asyncio
async def test_upgradable_prefers_upgrade():
    loop = asyncio.get_running_loop()
    pending = loop.create_future()
    result = Upgradable(immediate="local", upgrade=pending)
    pending.set_result("model")
    assert await result.upgraded() == "model"

    empty = loop.create_future()
    empty.set_result(None)
    assert await Upgradable(immediate="local", upgrade=empty).upgraded() == "local"
