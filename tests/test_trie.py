"""Tests for the token trie: building, queries, sampling and serialization."""

import string
from collections import Counter

import pytest
import torch

from wordtree.data.tokenizer import TokenSet
from wordtree.models.trie import TokenTrie, WordCheck


LETTERS = TokenSet(string.ascii_uppercase)
QU = TokenSet(["QU"])
GAME = TokenSet(LETTERS | QU)


def make_trie(words, token_sets=(LETTERS,)):
    trie = TokenTrie()
    for word in words:
        trie.insert(word, list(token_sets))
    return trie


# =============================================================================
# Building and queries
# =============================================================================

def test_insert_forks_parallel_spellings():
    trie = TokenTrie()
    created = trie.insert("QUEST", [LETTERS, QU])

    # Q-U-E-S-T plus QU-E-S-T
    assert created == 9
    assert trie.is_partial_or_full_word("QUEST", LETTERS) == WordCheck(True, True)
    assert trie.is_partial_or_full_word(["QU", "E", "S", "T"]) == WordCheck(True, True)
    assert trie.is_partial_or_full_word(["Q", "U", "E", "S", "T"]) == WordCheck(True, True)


def test_insert_existing_word_creates_nothing():
    trie = make_trie(["TEST"])
    assert trie.insert("TEST", [LETTERS]) == 0
    assert trie.insert("TESTS", [LETTERS]) == 1


def test_prefixes_are_partial_but_not_words():
    trie = make_trie(["TEST", "TESTS"])

    assert trie.is_partial_or_full_word("TES", LETTERS) == WordCheck(True, False)
    assert trie.is_partial_or_full_word("TEST", LETTERS) == WordCheck(True, True)
    assert trie.is_partial_or_full_word("TESTS", LETTERS) == WordCheck(True, True)
    assert trie.is_partial_or_full_word("TESTY", LETTERS) == WordCheck(False, False)
    assert trie.is_partial_or_full_word("ZEST", LETTERS) == WordCheck(False, False)


def test_walk_fails_on_unresolved_token():
    trie = make_trie(["TEST"])
    assert trie.walk("TE-ST", LETTERS) is None
    assert trie.walk("", LETTERS) is trie.root


def test_walk_string_requires_token_set():
    trie = make_trie(["TEST"])
    with pytest.raises(TypeError):
        trie.walk("TEST")


def test_walk_does_not_backtrack():
    """The game set resolves Q before QU, so the QU branch is not tried."""
    trie = TokenTrie()
    trie.insert("QUEST", [QU, LETTERS])
    trie.root.children.pop("Q")

    assert trie.walk("QUEST", GAME) is None
    assert trie.walk("QUEST", QU | LETTERS) is None
    assert trie.walk(["QU", "E", "S", "T"]) is not None


def test_next_tokens():
    trie = make_trie(["QUEST", "QUOTE"], [LETTERS, QU])
    assert trie.next_tokens(trie.walk("QU", LETTERS)) == {"E", "O"}
    assert trie.next_tokens(trie.root) == {"Q", "QU"}


def test_stats():
    trie = make_trie(["AB", "AC", "B"])
    stats = trie.stats()
    assert stats.nodes == 4
    assert stats.words == 3


# =============================================================================
# Enumeration and sampling
# =============================================================================

def test_all_words_of_length_counts_tokens():
    trie = make_trie(["QUEST", "QUOTE", "TEST"], [LETTERS, QU])

    assert set(trie.all_words_of_length(4, GAME)) == {"QUEST", "QUOTE", "TEST"}
    assert set(trie.all_words_of_length(5, GAME)) == {"QUEST", "QUOTE"}
    assert set(trie.all_words_of_length(5, LETTERS)) == {"QUEST", "QUOTE"}
    assert trie.all_words_of_length(4, LETTERS) == ["TEST"]
    assert trie.all_words_of_length(0, GAME) == []


def test_all_words_of_length_has_no_duplicates():
    # QUQU has four spellings, two of them three tokens long
    trie = make_trie(["QUQU", "QUIZ", "QUAY"], [LETTERS, QU])
    for n in range(1, 6):
        words = trie.all_words_of_length(n, GAME)
        assert len(words) == len(set(words))
        for path in trie.iter_paths(n, GAME):
            assert len(path) == n
            assert all(token in GAME for token in path)
    assert trie.all_words_of_length(3, GAME) == ["QUQU", "QUIZ", "QUAY"]


def test_iter_paths_filters_by_token_set():
    trie = make_trie(["QUEST"], [LETTERS, QU])
    assert list(trie.iter_paths(4, GAME)) == [("QU", "E", "S", "T")]
    assert list(trie.iter_paths(4, LETTERS)) == []


def test_random_word_of_length_is_uniform():
    """A skewed tree where per-step random descent would pick DOG half the time."""
    words = ["CAT", "CAR", "CAN", "COT", "DOG"]
    trie = make_trie(words)
    rng = torch.Generator().manual_seed(1234)

    draws = 10_000
    counts = Counter(trie.random_word_of_length(3, LETTERS, rng) for _ in range(draws))

    assert set(counts) == set(words)
    for word in words:
        assert counts[word] / draws == pytest.approx(0.2, abs=0.02)


def test_random_word_of_length_none_when_empty():
    trie = make_trie(["CAT"])
    assert trie.random_word_of_length(7, LETTERS) is None
    assert TokenTrie().random_word_of_length(3, LETTERS) is None


def test_random_word_completion():
    trie = make_trie(["CAT", "CAR", "CART", "DOG"])
    rng = torch.Generator().manual_seed(7)

    for _ in range(20):
        assert trie.random_word_completion("CA", 1, LETTERS, rng) in {"CAT", "CAR"}
    assert trie.random_word_completion("CA", 2, LETTERS, rng) == "CART"
    assert trie.random_word_completion("CAR", 0, LETTERS, rng) == "CAR"
    assert trie.random_word_completion("CX", 1, LETTERS, rng) is None
    assert trie.random_word_completion("DO", 3, LETTERS, rng) is None


def test_random_word_completion_with_separate_prefix_set():
    trie = make_trie(["QUEST"], [LETTERS, QU])
    word = trie.random_word_completion("QU", 3, GAME, prefix_set=LETTERS)
    assert word == "QUEST"


# =============================================================================
# Serialization
# =============================================================================

def test_encode_grammar():
    trie = make_trie(["AB", "AC", "B"])
    assert trie.encode() == "(A(B[]C[])B[])"


def test_encode_multi_char_token():
    trie = make_trie(["QUA"], [QU, LETTERS])
    assert trie.encode() == "({QU}(A[])Q(U(A[])))"


def test_encode_empty_trie():
    assert TokenTrie().encode() == "()"


def test_round_trip_answers_the_same_queries():
    words = ["QUEST", "QUOTE", "TEST", "TESTS", "AT", "EAT", "EAST"]
    trie = make_trie(words, [LETTERS, QU])
    decoded = TokenTrie.decode(trie.encode())

    assert decoded.encode() == trie.encode()
    assert decoded.stats() == trie.stats()
    probes = words + ["QU", "QUES", "TE", "TESTY", "QUOTES", "Z", "EA"]
    for probe in probes:
        assert decoded.is_partial_or_full_word(probe, LETTERS) == trie.is_partial_or_full_word(probe, LETTERS)
    for n in range(1, 6):
        assert decoded.all_words_of_length(n, GAME) == trie.all_words_of_length(n, GAME)


def test_save_and_load(tmp_path):
    trie = make_trie(["QUEST", "TEST"], [LETTERS, QU])
    path = tmp_path / "tree-en.txt"
    trie.save(path)
    assert TokenTrie.load(path).encode() == trie.encode()


@pytest.mark.parametrize("text", ["", "x", "ABC", "]", "{QU}[]"])
def test_decode_unrecognized_input_is_empty(text):
    assert TokenTrie.decode(text).is_empty()


def test_decode_truncated_input():
    trie = TokenTrie.decode("(A(B[]C")
    assert trie.is_partial_or_full_word("AB", LETTERS).is_full_word
    # a literal cut off before its node is read as a childless word
    assert trie.is_partial_or_full_word("AC", LETTERS).is_full_word

    trie = TokenTrie.decode("(A(B[](")
    assert trie.is_partial_or_full_word("AB", LETTERS).is_full_word

    trie = TokenTrie.decode("({QU")
    assert trie.walk(["QU"]) is not None


def test_decode_compact_leaves():
    """Leaves written without brackets are childless word nodes."""
    trie = TokenTrie.decode("(A(BC)D)")
    assert trie.is_partial_or_full_word("AB", LETTERS) == WordCheck(True, True)
    assert trie.is_partial_or_full_word("AC", LETTERS) == WordCheck(True, True)
    assert trie.is_partial_or_full_word("D", LETTERS) == WordCheck(True, True)
    assert trie.is_partial_or_full_word("A", LETTERS) == WordCheck(True, False)


def test_decode_deep_input_does_not_recurse():
    depth = 5000
    text = "(" + "A(" * depth + ")" * (depth + 1)
    trie = TokenTrie.decode(text)
    assert trie.walk("A" * depth, LETTERS) is not None
