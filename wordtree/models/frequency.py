"""Token frequency model used for procedural tile generation.

Counts are kept as a dense matrix with one row per context and one column
per token. Row 0 is the unconditional context ``"_"``, the other rows are
conditioned on a preceding token. Rows are normalised to probabilities at
query time.
"""

import json
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import torch

from wordtree.data.tokenizer import UNCONDITIONAL_CONTEXT, next_token


logger = logging.getLogger(__name__)


class NoCandidateTokenError(ValueError):
    """Raised when every token has zero sampling weight."""


@dataclass
class FrequencyRecord:
    """Counts of the tokens seen in one context."""
    total: float = 0.0
    counts: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_counts(cls, counts: Mapping[str, float]) -> 'FrequencyRecord':
        return cls(total=float(sum(counts.values())), counts=dict(counts))


def _as_number(value: float):
    value = float(value)
    return int(value) if value.is_integer() else value


class FrequencyModel:
    """Unconditional and pairwise (previous token -> next token) counts."""

    def __init__(
        self,
        tokens: Sequence[str],
        contexts: Sequence[str],
        counts: Union[torch.Tensor, Sequence[Sequence[float]]],
    ):
        """
        Args:
            tokens: Column tokens, in table iteration order
            contexts: Row contexts, the first one must be "_"
            counts: Count matrix of shape (len(contexts), len(tokens))
        """
        if not contexts or contexts[0] != UNCONDITIONAL_CONTEXT:
            raise ValueError(f"First context must be {UNCONDITIONAL_CONTEXT!r}")

        self.tokens: List[str] = list(tokens)
        self.contexts: List[str] = list(contexts)
        self.stoi = {t: i for i, t in enumerate(self.tokens)}
        self.ctoi = {c: i for i, c in enumerate(self.contexts)}

        counts = torch.as_tensor(counts, dtype=torch.float64).reshape(len(self.contexts), len(self.tokens))
        if (counts < 0).any():
            raise ValueError("Frequency counts must not be negative")

        self.counts = counts
        self.totals = counts.sum(dim=1)
        safe_totals = torch.where(self.totals > 0, self.totals, torch.ones_like(self.totals))
        self.probs = counts / safe_totals.unsqueeze(1)

    # ---------- Construction ----------

    @classmethod
    def from_records(cls, records: Mapping[str, FrequencyRecord]) -> 'FrequencyModel':
        if UNCONDITIONAL_CONTEXT not in records:
            raise ValueError(f"Frequency table has no {UNCONDITIONAL_CONTEXT!r} context")

        contexts = [UNCONDITIONAL_CONTEXT] + [c for c in records if c != UNCONDITIONAL_CONTEXT]
        tokens = list(records[UNCONDITIONAL_CONTEXT].counts)
        seen = set(tokens)
        for context in contexts[1:]:
            for token in records[context].counts:
                if token not in seen:
                    seen.add(token)
                    tokens.append(token)

        stoi = {t: i for i, t in enumerate(tokens)}
        counts = torch.zeros(len(contexts), len(tokens), dtype=torch.float64)
        for row, context in enumerate(contexts):
            for token, count in records[context].counts.items():
                counts[row, stoi[token]] = float(count)
        return cls(tokens, contexts, counts)

    @classmethod
    def from_words(cls, words: Iterable[str], game_tokens: Sequence[str]) -> 'FrequencyModel':
        """Count game tokens and adjacent token pairs over a word list.

        Each word is read with the game alphabet until a position does not
        resolve. Every game token gets a context row, even when empty.

        The game alphabet mixes single letters and tiles, and the shortest
        match wins, so a tile such as ``QU`` is counted as ``Q`` then ``U``
        whenever ``Q`` is also a game token. Such a tile keeps zero weight
        and is never sampled.
        """
        token_set = frozenset(game_tokens)
        unigrams: Counter = Counter()
        pairs: Dict[str, Counter] = defaultdict(Counter)

        for word in words:
            tokens = []
            pos = 0
            while True:
                token = next_token(word[pos:], token_set)
                if token is None:
                    break
                tokens.append(token)
                pos += len(token)

            unigrams.update(tokens)
            for a, b in zip(tokens, tokens[1:]):
                pairs[a][b] += 1

        records = {UNCONDITIONAL_CONTEXT: FrequencyRecord.from_counts(unigrams)}
        for token in game_tokens:
            records[token] = FrequencyRecord.from_counts(pairs.get(token, {}))
        return cls.from_records(records)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'FrequencyModel':
        """Build a model from the JSON layout ``{context: {total, probs}}``.

        A flat ``{token: count}`` mapping is read as an unconditional-only
        table.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Frequency table must be an object, got {type(data).__name__}")
        if data and all(isinstance(v, (int, float)) for v in data.values()):
            data = {UNCONDITIONAL_CONTEXT: {'probs': data}}

        records = {}
        for context, entry in data.items():
            if not isinstance(entry, Mapping):
                raise ValueError(f"Context {context!r}: expected an object, got {type(entry).__name__}")
            probs = entry.get('probs') or {}
            if not isinstance(probs, Mapping):
                raise ValueError(f"Context {context!r}: 'probs' must be an object")
            counts = {tok: float(c) for tok, c in probs.items()}
            record = FrequencyRecord.from_counts(counts)
            stored = entry.get('total')
            if stored is not None and abs(float(stored) - record.total) > 1e-6:
                logger.warning(
                    f"Context {context!r}: stored total {stored} != sum of counts {record.total}, using the sum"
                )
            records[context] = record
        return cls.from_records(records)

    def to_dict(self) -> Dict:
        data = {}
        for row, context in enumerate(self.contexts):
            probs = {
                token: _as_number(self.counts[row, col])
                for col, token in enumerate(self.tokens)
                if self.counts[row, col] > 0
            }
            data[context] = {'total': _as_number(self.totals[row]), 'probs': probs}
        return data

    def save(self, path: Union[str, Path]) -> None:
        """Save the frequency table to a JSON file."""
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'FrequencyModel':
        """Load a frequency table from a JSON file."""
        with open(path, 'r', encoding='utf-8-sig') as f:
            return cls.from_dict(json.load(f))

    def record(self, context: str) -> FrequencyRecord:
        row = self.ctoi[context]
        counts = {
            token: float(self.counts[row, col])
            for col, token in enumerate(self.tokens)
            if self.counts[row, col] > 0
        }
        return FrequencyRecord(total=float(self.totals[row]), counts=counts)

    # ---------- Sampling ----------

    def _inverse_cdf(self, weights: torch.Tensor, rng: Optional[torch.Generator]) -> str:
        """Pick the first token whose cumulative weight exceeds r ~ U[0, total)."""
        total = weights.sum()
        if not total > 0:
            raise NoCandidateTokenError("No candidate token: all weights are zero")

        cdf = torch.cumsum(weights, dim=0)
        r = torch.rand(1, generator=rng, dtype=torch.float64) * total
        idx = int(torch.searchsorted(cdf, r, right=True).item())
        # rounding can push r onto the final edge of the cdf
        last = int(torch.nonzero(weights > 0)[-1].item())
        return self.tokens[min(idx, last)]

    def sample_unconditional(self, rng: Optional[torch.Generator] = None) -> str:
        """Sample a token from the unconditional ("_") counts."""
        return self._inverse_cdf(self.counts[0], rng)

    def neighbor_weights(
        self,
        neighbors: Sequence[str],
        pair_weight: float = 1.0,
        repeat_weight: float = 1.0,
        flatten_scale: float = 1.0,
    ) -> torch.Tensor:
        """Sampling weights for a cell next to `neighbors`.

        The unconditional distribution is flattened toward its mean
        (0 = uniform, 1 = unchanged), each neighbour adds its conditional row
        scaled by `pair_weight`, and tokens that are themselves neighbours are
        multiplied by `repeat_weight`.
        """
        base = self.probs[0]
        mean = base.mean()
        weights = (mean + (base - mean) * flatten_scale).clamp(min=0)

        for token in neighbors:
            row = self.ctoi.get(token)
            if row is None or row == 0:
                continue
            weights = weights + self.probs[row] * pair_weight

        repeats = [self.stoi[t] for t in dict.fromkeys(neighbors) if t in self.stoi]
        if repeats:
            weights[repeats] *= repeat_weight
        return weights.clamp(min=0)

    def sample_given_neighbors(
        self,
        neighbors: Sequence[str],
        pair_weight: float = 1.0,
        repeat_weight: float = 1.0,
        flatten_scale: float = 1.0,
        rng: Optional[torch.Generator] = None,
    ) -> str:
        weights = self.neighbor_weights(neighbors, pair_weight, repeat_weight, flatten_scale)
        return self._inverse_cdf(weights, rng)
