"""Token trie: a prefix tree keyed by tokens rather than characters.

The tree is built once (offline from a word list, or by decoding the
serialized text form) and is read-only afterwards.

Serialized form, pre-order with no whitespace::

    node          := '[' child* ']'    word node
                   | '(' child* ')'    non-word node
    child         := token-literal node
    token-literal := single-char | '{' multi-char-token '}'
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

import torch

from wordtree.data.tokenizer import next_token


logger = logging.getLogger(__name__)

# A word is either text to tokenize or a sequence of tokens already split
Word = Union[str, Sequence[str]]


class WordCheck(NamedTuple):
    is_partial: bool
    is_full_word: bool


@dataclass
class TrieStats:
    """Node and word counts of a trie."""
    words: int = 0
    nodes: int = 0


class TrieNode:
    __slots__ = ('children', 'is_word')

    def __init__(self, is_word: bool = False):
        self.children: Dict[str, 'TrieNode'] = {}
        self.is_word = is_word

    def __repr__(self) -> str:
        return f"TrieNode(is_word={self.is_word}, children={list(self.children)})"


def random_index(n: int, rng: Optional[torch.Generator] = None) -> int:
    """Uniform integer in [0, n)."""
    return int(torch.randint(n, (1,), generator=rng).item())


def _iter_tokens(word: Word, token_set: Optional[AbstractSet[str]]) -> Iterator[Optional[str]]:
    """Yield the tokens of `word`; a trailing None marks an unresolved position."""
    if not isinstance(word, str):
        yield from word
        return
    if token_set is None:
        raise TypeError("A token set is required to tokenize a string")

    pos = 0
    while pos < len(word):
        token = next_token(word[pos:], token_set)
        yield token
        if token is None:
            return
        pos += len(token)


class TokenTrie:
    """Prefix tree over tokens recording which token sequences are words."""

    def __init__(self, root: Optional[TrieNode] = None):
        self.root = root if root is not None else TrieNode()

    # ---------- Building ----------

    def insert(self, word: str, token_sets: Sequence[AbstractSet[str]]) -> int:
        """Insert `word` once for every spelling the token sets produce.

        At each position every token set proposes its next token and each
        distinct proposal forks a branch, so passing the linguistic and the
        game-only sets stores both ``Q-U-E-S-T`` and ``QU-E-S-T``.

        Returns:
            Number of nodes created
        """
        if not word:
            return 0

        created = 0
        stack = [(self.root, 0)]
        while stack:
            node, pos = stack.pop()
            rest = word[pos:]

            proposals: List[str] = []
            for token_set in token_sets:
                token = next_token(rest, token_set)
                if token is not None and token not in proposals:
                    proposals.append(token)

            for token in proposals:
                child = node.children.get(token)
                if child is None:
                    child = node.children[token] = TrieNode()
                    created += 1
                end = pos + len(token)
                if end == len(word):
                    child.is_word = True
                else:
                    stack.append((child, end))
        return created

    # ---------- Queries ----------

    def walk(
        self,
        word: Word,
        token_set: Optional[AbstractSet[str]] = None,
        node: Optional[TrieNode] = None,
    ) -> Optional[TrieNode]:
        """Return the node reached by `word`, or None if the walk fails.

        The walk reads one token at a time and never backtracks into another
        tokenization.
        """
        node = self.root if node is None else node
        for token in _iter_tokens(word, token_set):
            if token is None:
                return None
            node = node.children.get(token)
            if node is None:
                return None
        return node

    def is_partial_or_full_word(
        self,
        word: Word,
        token_set: Optional[AbstractSet[str]] = None,
    ) -> WordCheck:
        node = self.walk(word, token_set)
        if node is None:
            return WordCheck(False, False)
        return WordCheck(True, node.is_word)

    @staticmethod
    def next_tokens(node: TrieNode) -> set:
        return set(node.children)

    def iter_paths(
        self,
        n: int,
        token_set: AbstractSet[str],
        node: Optional[TrieNode] = None,
    ) -> Iterator[Tuple[str, ...]]:
        """Depth-first walk over every word path of exactly `n` tokens.

        Every token on a yielded path belongs to `token_set`.
        """
        if n < 0:
            return
        start = self.root if node is None else node
        stack = [(start, ())]
        while stack:
            current, path = stack.pop()
            if len(path) == n:
                if current.is_word:
                    yield path
                continue
            # reversed so paths come out in child order
            for token, child in reversed(list(current.children.items())):
                if token in token_set:
                    stack.append((child, path + (token,)))

    def all_words_of_length(
        self,
        n: int,
        token_set: AbstractSet[str],
        node: Optional[TrieNode] = None,
    ) -> List[str]:
        """Every distinct word spelled by exactly `n` tokens of `token_set`."""
        return list(dict.fromkeys(''.join(p) for p in self.iter_paths(n, token_set, node)))

    def random_word_of_length(
        self,
        n: int,
        token_set: AbstractSet[str],
        rng: Optional[torch.Generator] = None,
        node: Optional[TrieNode] = None,
    ) -> Optional[str]:
        """Uniformly sample one of `all_words_of_length(n, token_set)`.

        The full candidate list is enumerated first. Picking a random child
        at each depth instead would favour words under sparse branches.
        """
        words = self.all_words_of_length(n, token_set, node)
        if not words:
            return None
        return words[random_index(len(words), rng)]

    def random_word_completion(
        self,
        prefix: Word,
        extra_length: int,
        token_set: AbstractSet[str],
        rng: Optional[torch.Generator] = None,
        prefix_set: Optional[AbstractSet[str]] = None,
    ) -> Optional[str]:
        """Complete `prefix` with `extra_length` more tokens into a random word.

        Args:
            prefix: Start of the word
            extra_length: Number of tokens to append
            token_set: Tokens allowed in the completion
            rng: Random source
            prefix_set: Tokens used to resolve the prefix (defaults to token_set)
        """
        node = self.walk(prefix, prefix_set if prefix_set is not None else token_set)
        if node is None:
            return None
        suffix = self.random_word_of_length(extra_length, token_set, rng, node=node)
        if suffix is None:
            return None
        prefix_text = prefix if isinstance(prefix, str) else ''.join(prefix)
        return prefix_text + suffix

    def stats(self) -> TrieStats:
        stats = TrieStats()
        stack = [self.root]
        while stack:
            node = stack.pop()
            for child in node.children.values():
                stats.nodes += 1
                if child.is_word:
                    stats.words += 1
                stack.append(child)
        return stats

    def is_empty(self) -> bool:
        return not self.root.children

    # ---------- Serialization ----------

    def encode(self) -> str:
        """Serialize the trie; every node is written with its bracket pair."""
        parts = ['[' if self.root.is_word else '(']
        stack = [(self.root, iter(self.root.children.items()))]
        while stack:
            node, children = stack[-1]
            item = next(children, None)
            if item is None:
                parts.append(']' if node.is_word else ')')
                stack.pop()
                continue

            token, child = item
            parts.append(token if len(token) == 1 else '{' + token + '}')
            parts.append('[' if child.is_word else '(')
            stack.append((child, iter(child.children.items())))
        return ''.join(parts)

    @classmethod
    def decode(cls, text: str) -> 'TokenTrie':
        """Rebuild a trie from its serialized text in a single forward scan.

        Never raises. Truncated or malformed input yields whatever was read
        up to that point. A child literal that is not followed by a bracket
        is a childless word node, the compact leaf form of older exports.
        """
        root = TrieNode()
        if not text or text[0] not in '([':
            return cls(root)

        root.is_word = text[0] == '['
        stack = [root]
        pos, end = 1, len(text)
        while stack and pos < end:
            c = text[pos]
            pos += 1
            if c in ')]':
                stack.pop()
                continue
            if c in '([}':
                logger.debug(f"Unexpected {c!r} at offset {pos - 1}, stopping")
                break

            if c == '{':
                close = text.find('}', pos)
                if close < 0:
                    close = end
                token = text[pos:close]
                pos = close + 1
                if not token:
                    logger.debug(f"Empty token literal at offset {close}, stopping")
                    break
            else:
                token = c

            parent = stack[-1]
            child = parent.children.get(token)
            if child is None:
                child = parent.children[token] = TrieNode()

            if pos < end and text[pos] in '([':
                child.is_word = child.is_word or text[pos] == '['
                pos += 1
                stack.append(child)
            else:
                child.is_word = True
        return cls(root)

    def save(self, path: Union[str, Path]) -> None:
        """Write the serialized trie to a text file."""
        Path(path).write_text(self.encode(), encoding='utf-8')

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'TokenTrie':
        return cls.decode(Path(path).read_text(encoding='utf-8-sig'))
