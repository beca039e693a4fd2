"""Wildcard pattern expansion over a token trie."""

from typing import AbstractSet, Callable, Optional, Set

from wordtree.models.trie import TokenTrie


class WildcardExpander:
    """Expand patterns such as ``QU??T`` into the dictionary words they match.

    Each wildcard stands for one token. Away from the start of the pattern
    only the tokens that can follow the prefix in the trie are tried, so the
    search never brute-forces the whole alphabet mid-word.
    """

    def __init__(
        self,
        trie: TokenTrie,
        all_tokens: AbstractSet[str],
        walk_set: AbstractSet[str],
        wildcard: str = '?',
        min_word_length: int = 1,
    ):
        """
        Args:
            trie: Dictionary trie
            all_tokens: Tokens tried for a wildcard at the start of a pattern
            walk_set: Tokens used to read concrete prefixes
            wildcard: Wildcard marker
            min_word_length: Shortest accepted word, in characters
        """
        self.trie = trie
        self.all_tokens = all_tokens
        self.walk_set = walk_set
        self.wildcard = wildcard
        self.min_word_length = min_word_length

    def is_word(self, word: str) -> bool:
        if len(word) < self.min_word_length:
            return False
        return self.trie.is_partial_or_full_word(word, self.walk_set).is_full_word

    def is_partial(self, word: str) -> bool:
        if not word:
            return False
        return self.trie.is_partial_or_full_word(word, self.walk_set).is_partial

    def expand(self, pattern: str) -> Set[str]:
        """All dictionary words matching `pattern`."""
        results: Set[str] = set()
        self._expand(pattern, self.is_word, results)
        return results

    def expand_partials(self, pattern: str) -> Set[str]:
        """All valid word prefixes matching `pattern`."""
        results: Set[str] = set()
        self._expand(pattern, self.is_partial, results)
        return results

    def _options(self, prefix: str) -> Optional[AbstractSet[str]]:
        if not prefix:
            return self.all_tokens
        node = self.trie.walk(prefix, self.walk_set)
        if node is None:
            return None
        return self.trie.next_tokens(node)

    def _expand(self, pattern: str, accept: Callable[[str], bool], results: Set[str]) -> None:
        wild_idx = pattern.find(self.wildcard)
        if wild_idx < 0:
            if accept(pattern):
                results.add(pattern)
            return

        prefix = pattern[:wild_idx]
        options = self._options(prefix)
        if not options:
            return

        rest = pattern[wild_idx + len(self.wildcard):]
        for option in options:
            self._expand(prefix + option + rest, accept, results)
