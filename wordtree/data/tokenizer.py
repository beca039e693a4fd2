"""Token alphabets and tokenization utilities."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Union


# Characters used by the serialized tree format
RESERVED_CHARS = frozenset('()[]{}')
UNCONDITIONAL_CONTEXT = '_'


class TokenSet(frozenset):
    """Immutable set of tokens that remembers its longest token length."""

    def __new__(cls, tokens: Iterable[str] = ()):
        self = super().__new__(cls, tokens)
        self.max_len = max((len(t) for t in self), default=0)
        return self

    def __repr__(self) -> str:
        return f"TokenSet({sorted(self)!r})"


def next_token(
    text: str,
    token_set: AbstractSet[str],
    max_token_len: Optional[int] = None,
) -> Optional[str]:
    """Return the shortest prefix of `text` that is a member of `token_set`.

    Lengths are tried ascending from 1, so a set mixing single letters and
    multi-character tiles that start with the same letter always resolves to
    the single letter. Callers must pass one purpose-specific set.

    Args:
        text: Text to read the next token from
        token_set: Tokens allowed at this position
        max_token_len: Longest token length to try (defaults to the set's)
    """
    if not text:
        return None
    if max_token_len is None:
        max_token_len = getattr(token_set, 'max_len', None)
        if max_token_len is None:
            max_token_len = max((len(t) for t in token_set), default=0)

    for tok_len in range(1, min(max_token_len, len(text)) + 1):
        token = text[:tok_len]
        if token in token_set:
            return token
    return None


def tokenize(text: str, token_set: AbstractSet[str]) -> Optional[List[str]]:
    """Split `text` end-to-end into tokens, or None if some part does not resolve."""
    tokens = []
    pos = 0
    while pos < len(text):
        token = next_token(text[pos:], token_set)
        if token is None:
            return None
        tokens.append(token)
        pos += len(token)
    return tokens


@dataclass
class LangConfig:
    """Language configuration as stored in `config-<lang>.json`."""
    tokens: List[str]
    game_tokens: List[str] = field(default_factory=list)
    wildcard_token: str = '?'
    minimum_word: int = 2

    def __post_init__(self):
        if not self.tokens:
            raise ValueError("Language config has no tokens")
        if not self.wildcard_token:
            raise ValueError("Wildcard token must not be empty")
        if self.minimum_word < 1:
            raise ValueError(f"Minimum word length must be positive, got {self.minimum_word}")

        for token in list(self.tokens) + list(self.game_tokens):
            if not token:
                raise ValueError("Empty token in language config")
            bad = RESERVED_CHARS.intersection(token)
            if bad:
                raise ValueError(f"Token {token!r} uses reserved characters {sorted(bad)}")
            if token.upper() == self.wildcard_token.upper():
                raise ValueError(f"Wildcard {self.wildcard_token!r} is also a token")

    @classmethod
    def from_dict(cls, data: Dict) -> 'LangConfig':
        """Build a config from the JSON layout (`Tokens`, `GameTokens`, ...)."""
        if not isinstance(data, Mapping):
            raise ValueError(f"Language config must be an object, got {type(data).__name__}")
        if 'Tokens' not in data:
            raise ValueError("Language config is missing 'Tokens'")
        kwargs = {
            'tokens': list(data['Tokens']),
            'game_tokens': list(data.get('GameTokens') or []),
        }
        # Falsy values keep the defaults
        if data.get('WildcardToken'):
            kwargs['wildcard_token'] = data['WildcardToken']
        if data.get('MinimumWord'):
            kwargs['minimum_word'] = int(data['MinimumWord'])
        return cls(**kwargs)

    def to_dict(self) -> Dict:
        return {
            'Tokens': self.tokens,
            'GameTokens': self.game_tokens,
            'WildcardToken': self.wildcard_token,
            'MinimumWord': self.minimum_word,
        }

    @classmethod
    def from_json(cls, text: str) -> 'LangConfig':
        return cls.from_dict(json.loads(text))

    def save(self, path: Union[str, Path]) -> None:
        """Save the config to a JSON file."""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'LangConfig':
        """Load a config from a JSON file (a leading BOM is ignored)."""
        with open(path, 'r', encoding='utf-8-sig') as f:
            return cls.from_dict(json.load(f))


class TokenAlphabet:
    """Linguistic and game alphabets derived from a language config.

    Lookups are done on uppercase tokens. Game tokens whose configured case
    differs from their uppercase form keep a reverse mapping for display.
    """

    def __init__(self, config: LangConfig):
        """
        Args:
            config: Language configuration to derive the alphabets from
        """
        self.config = config
        lang = [t.upper() for t in config.tokens]
        # Without game tokens the player types the linguistic alphabet
        game = [t.upper() for t in (config.game_tokens or config.tokens)]

        self.lang_tokens = TokenSet(lang)
        self.game_tokens = TokenSet(game)
        self.game_token_order = list(dict.fromkeys(game))
        self.game_only_tokens = TokenSet(t for t in game if t not in self.lang_tokens)
        self.all_tokens = TokenSet(self.lang_tokens | self.game_only_tokens)
        self.readable: Dict[str, str] = {
            t.upper(): t for t in config.game_tokens if t.upper() != t
        }
        self.max_token_len = max(self.lang_tokens.max_len, self.game_tokens.max_len)

    @property
    def wildcard(self) -> str:
        return self.config.wildcard_token.upper()

    @property
    def min_word_length(self) -> int:
        return self.config.minimum_word

    def build_sets(self) -> List[TokenSet]:
        """Token sets used to spell each word into the trie."""
        sets = [self.lang_tokens]
        if self.game_only_tokens:
            sets.append(self.game_only_tokens)
        return sets

    def next_game_token(self, text: str) -> Optional[str]:
        return next_token(text.upper(), self.game_tokens, self.max_token_len)

    def readable_form(self, token: str) -> str:
        return self.readable.get(token, token)
