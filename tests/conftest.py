"""
Shared test fixtures.

Available fixtures:
- qu_config: A..Z linguistic alphabet plus a two-letter "Qu" game tile
- qu_lexicon: Lexicon built from QUEST, QUOTE and TEST with qu_config
- sample_words: Small English word list, including QUEST, QUIET and QUOTE
- plain_config: A..Z only, so tokens and characters coincide
- sample_lexicon: Lexicon built from sample_words with qu_config
- lexicon_dir: Temporary directory with exported config/tree/prob files
"""

import string

import pytest

from wordtree.data.builder import build_lexicon, export_lexicon
from wordtree.data.tokenizer import LangConfig
from wordtree.lexicon import Lexicon, LexiconSource


LETTERS = list(string.ascii_uppercase)

SAMPLE_WORDS = [
    "AN", "AT", "BE", "BEAR", "BEAT", "BEST", "CAT", "CATS", "COAT", "DOG",
    "EAST", "EAT", "FAST", "FEAST", "GOAT", "HAT", "HEAT", "LAST", "NEST",
    "OAT", "PAST", "QUEST", "QUIET", "QUOTE", "REST", "SEAT", "STAR", "TEST",
    "TESTS", "WEST",
]


@pytest.fixture
def sample_words():
    return list(SAMPLE_WORDS)


@pytest.fixture
def qu_config():
    return LangConfig(
        tokens=LETTERS,
        game_tokens=LETTERS + ["Qu"],
        wildcard_token="?",
        minimum_word=2,
    )


@pytest.fixture
def qu_lexicon(qu_config):
    result = build_lexicon(["QUEST", "QUOTE", "TEST"], qu_config)
    return Lexicon(qu_config, result.trie, result.frequencies)


@pytest.fixture
def plain_config():
    return LangConfig(tokens=LETTERS, game_tokens=LETTERS, minimum_word=2)


@pytest.fixture
def sample_lexicon(qu_config):
    result = build_lexicon(SAMPLE_WORDS, qu_config)
    return Lexicon(qu_config, result.trie, result.frequencies)


@pytest.fixture
def lexicon_dir(tmp_path, qu_config):
    """Directory with config, word list and exported artifacts for 'en'."""
    qu_config.save(tmp_path / "config-en.json")
    (tmp_path / "words-en.txt").write_text("\n".join(SAMPLE_WORDS) + "\n", encoding="utf-8")
    export_lexicon(tmp_path, "en")
    return tmp_path


@pytest.fixture
def lexicon_source(lexicon_dir):
    return LexiconSource(lexicon_dir, "en")
