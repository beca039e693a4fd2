"""Lexicon facade combining the alphabet, trie, frequency model and wildcards."""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

import requests
import torch

from wordtree.data.tokenizer import LangConfig, TokenAlphabet
from wordtree.models.frequency import FrequencyModel
from wordtree.models.trie import TokenTrie, Word, random_index
from wordtree.utils.wildcard import WildcardExpander


logger = logging.getLogger(__name__)


class LexiconState(enum.Enum):
    UNINITIALIZED = 'uninitialized'
    LOADING = 'loading'
    READY = 'ready'
    ERROR = 'error'


class LexiconLoadError(RuntimeError):
    """Raised when the lexicon artifacts cannot be read or are corrupt."""


class LexiconNotReadyError(RuntimeError):
    """Raised when a lexicon is queried before it finished loading."""


@dataclass
class LexiconSource:
    """Where the language artifacts live: a directory or an http(s) base URL."""
    location: Union[str, Path]
    lang: str = 'en'
    timeout: float = 10.0

    @property
    def is_remote(self) -> bool:
        return str(self.location).startswith(('http://', 'https://'))

    @property
    def config_name(self) -> str:
        return f'config-{self.lang}.json'

    @property
    def prob_name(self) -> str:
        return f'prob-{self.lang}.json'

    @property
    def tree_name(self) -> str:
        return f'tree-{self.lang}.txt'

    @property
    def words_name(self) -> str:
        return f'words-{self.lang}.txt'

    def artifact_names(self) -> Tuple[str, str, str]:
        return self.config_name, self.prob_name, self.tree_name

    def read_text(self, name: str) -> str:
        """Read one artifact as text, without a leading byte order mark."""
        if self.is_remote:
            url = f"{str(self.location).rstrip('/')}/{name}"
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            # artifacts are always UTF-8, whatever charset the server reports
            return response.content.decode('utf-8-sig')
        return (Path(self.location) / name).read_text(encoding='utf-8-sig')


def _normalize(word: Word) -> Word:
    if isinstance(word, str):
        return word.upper()
    return [token.upper() for token in word]


def _surface_length(word: Word) -> int:
    if isinstance(word, str):
        return len(word)
    return sum(len(token) for token in word)


class Lexicon:
    """Word queries and token generation for one language.

    Build one either from loaded parts (offline builder) or empty and then
    `initialize`/`load` it from artifacts. Once READY it is read-only, and
    every query is a pure function of its arguments and the random source.
    """

    def __init__(
        self,
        config: Optional[LangConfig] = None,
        trie: Optional[TokenTrie] = None,
        frequencies: Optional[FrequencyModel] = None,
    ):
        self._state = LexiconState.UNINITIALIZED
        self._words_by_length: Dict[int, Tuple[str, ...]] = {}
        self.config: Optional[LangConfig] = None
        self.alphabet: Optional[TokenAlphabet] = None
        self.trie: Optional[TokenTrie] = None
        self.frequencies: Optional[FrequencyModel] = None
        self._expander: Optional[WildcardExpander] = None

        parts = (config, trie, frequencies)
        if all(p is not None for p in parts):
            self._install(config, trie, frequencies)
        elif any(p is not None for p in parts):
            raise ValueError("config, trie and frequencies must be given together")

    @property
    def state(self) -> LexiconState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is LexiconState.READY

    # ---------- Loading ----------

    def _install(self, config: LangConfig, trie: TokenTrie, frequencies: FrequencyModel) -> None:
        self.config = config
        self.alphabet = TokenAlphabet(config)
        self.trie = trie
        self.frequencies = frequencies
        self._expander = WildcardExpander(
            trie,
            all_tokens=self.alphabet.all_tokens,
            walk_set=self.alphabet.lang_tokens,
            wildcard=self.alphabet.wildcard,
            min_word_length=config.minimum_word,
        )
        self._words_by_length.clear()
        self._state = LexiconState.READY

    def _install_texts(self, config_text: str, prob_text: str, tree_text: str) -> None:
        config = LangConfig.from_json(config_text)
        frequencies = FrequencyModel.from_dict(json.loads(prob_text))
        trie = TokenTrie.decode(tree_text)
        if tree_text and trie.is_empty():
            raise ValueError(f"Tree data of {len(tree_text)} characters decoded to an empty tree")

        self._install(config, trie, frequencies)
        stats = trie.stats()
        logger.info(
            f"Lexicon ready: {stats.words} word nodes, {stats.nodes} nodes, "
            f"{len(frequencies.tokens)} weighted tokens, tree data {len(tree_text)} chars"
        )

    def _begin(self, source: LexiconSource) -> bool:
        if self._state in (LexiconState.LOADING, LexiconState.READY):
            logger.debug(f"Lexicon already {self._state.value}, ignoring load of {source.location}")
            return False
        self._state = LexiconState.LOADING
        return True

    def _fail(self, source: LexiconSource, error: BaseException) -> LexiconLoadError:
        self._state = LexiconState.ERROR
        logger.error(f"Initialization error for {source.lang!r} at {source.location}: {error}")
        return LexiconLoadError(f"Could not load lexicon {source.lang!r} from {source.location}: {error}")

    async def initialize(self, source: LexiconSource) -> bool:
        """Read the three artifacts concurrently and get ready.

        Returns:
            True if this call loaded the lexicon, False if it was already
            loading or ready
        """
        if not self._begin(source):
            return False
        try:
            texts = await asyncio.gather(
                *(asyncio.to_thread(source.read_text, name) for name in source.artifact_names())
            )
            self._install_texts(*texts)
        except (OSError, requests.RequestException, ValueError, TypeError) as e:
            raise self._fail(source, e) from e
        except BaseException:
            self._state = LexiconState.ERROR
            raise
        return True

    def load(self, source: LexiconSource) -> bool:
        """Synchronous version of `initialize`."""
        if not self._begin(source):
            return False
        try:
            self._install_texts(*(source.read_text(name) for name in source.artifact_names()))
        except (OSError, requests.RequestException, ValueError, TypeError) as e:
            raise self._fail(source, e) from e
        except BaseException:
            self._state = LexiconState.ERROR
            raise
        return True

    def _require_ready(self) -> None:
        if self._state is not LexiconState.READY:
            raise LexiconNotReadyError(f"Lexicon is {self._state.value}")

    # ---------- Queries ----------

    def is_valid_word(self, word: Word) -> bool:
        self._require_ready()
        word = _normalize(word)
        if _surface_length(word) < self.config.minimum_word:
            return False
        return self.trie.is_partial_or_full_word(word, self.alphabet.lang_tokens).is_full_word

    def is_valid_partial_word(self, word: Word) -> bool:
        self._require_ready()
        word = _normalize(word)
        if not _surface_length(word):
            return False
        return self.trie.is_partial_or_full_word(word, self.alphabet.lang_tokens).is_partial

    def next_tokens_after(self, prefix: Word) -> Optional[List[str]]:
        """Tokens that can follow `prefix`, or None if it is empty or unknown."""
        self._require_ready()
        prefix = _normalize(prefix)
        if not _surface_length(prefix):
            return None
        node = self.trie.walk(prefix, self.alphabet.lang_tokens)
        if node is None:
            return None
        return list(node.children)

    def _cached_words(self, length: int) -> Tuple[str, ...]:
        self._require_ready()
        words = self._words_by_length.get(length)
        if words is None:
            words = tuple(self.trie.all_words_of_length(length, self.alphabet.game_tokens))
            self._words_by_length[length] = words
        return words

    def words_of_length(self, length: int) -> List[str]:
        """Every word spelled by exactly `length` game tokens, as a new list."""
        return list(self._cached_words(length))

    def random_word(self, length: int, rng: Optional[torch.Generator] = None) -> Optional[str]:
        """Uniformly random word of `length` game tokens, or None if there is none."""
        words = self._cached_words(length)
        if not words:
            return None
        return words[random_index(len(words), rng)]

    def random_word_completion(
        self,
        prefix: Word,
        extra_length: int,
        rng: Optional[torch.Generator] = None,
    ) -> Optional[str]:
        self._require_ready()
        return self.trie.random_word_completion(
            _normalize(prefix),
            extra_length,
            self.alphabet.game_tokens,
            rng,
            prefix_set=self.alphabet.lang_tokens,
        )

    def sample_token(self, rng: Optional[torch.Generator] = None) -> str:
        self._require_ready()
        return self.frequencies.sample_unconditional(rng)

    def sample_token_given_neighbors(
        self,
        neighbors: Sequence[str],
        pair_weight: float = 1.0,
        repeat_weight: float = 1.0,
        flatten_scale: float = 1.0,
        rng: Optional[torch.Generator] = None,
    ) -> str:
        self._require_ready()
        return self.frequencies.sample_given_neighbors(
            neighbors, pair_weight, repeat_weight, flatten_scale, rng
        )

    def expand_wildcard_words(self, pattern: str) -> Set[str]:
        self._require_ready()
        return self._expander.expand(pattern.upper())

    def expand_wildcard_partials(self, pattern: str) -> Set[str]:
        self._require_ready()
        return self._expander.expand_partials(pattern.upper())

    def readable_form(self, token: str) -> str:
        self._require_ready()
        return self.alphabet.readable_form(token)

    def next_game_token(self, text: str) -> Optional[str]:
        self._require_ready()
        return self.alphabet.next_game_token(text)
