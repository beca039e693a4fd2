"""Offline builder: raw word list -> serialized trie + frequency table."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Union

from wordtree.data.tokenizer import LangConfig, TokenAlphabet, tokenize
from wordtree.models.frequency import FrequencyModel
from wordtree.models.trie import TokenTrie


logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Artifacts and counts produced by a build."""
    trie: TokenTrie
    frequencies: FrequencyModel
    num_words: int
    num_nodes: int
    num_skipped: int = 0


def read_words(path: Union[str, Path]) -> List[str]:
    """Read a newline-delimited word list."""
    with open(path, 'r', encoding='utf-8-sig') as f:
        return [l.strip() for l in f if l.strip()]


def clean_words(lines: Iterable[str], min_length: int) -> List[str]:
    """Uppercase words and drop those shorter than `min_length` characters."""
    words = (line.strip().upper() for line in lines)
    return [w for w in words if len(w) >= min_length]


def build_lexicon(lines: Iterable[str], config: LangConfig) -> BuildResult:
    """Build the trie and the frequency table for a word list.

    Words that cannot be spelled with the linguistic alphabet are skipped.
    """
    alphabet = TokenAlphabet(config)
    token_sets = alphabet.build_sets()

    trie = TokenTrie()
    words = []
    num_nodes = 0
    num_skipped = 0
    for word in clean_words(lines, config.minimum_word):
        if tokenize(word, alphabet.lang_tokens) is None:
            logger.debug(f"Skipping {word!r}: not spelled by the language tokens")
            num_skipped += 1
            continue
        num_nodes += trie.insert(word, token_sets)
        words.append(word)

    frequencies = FrequencyModel.from_words(words, alphabet.game_token_order)

    if num_skipped:
        logger.warning(f"Skipped {num_skipped} words with unknown tokens")
    return BuildResult(
        trie=trie,
        frequencies=frequencies,
        num_words=len(words),
        num_nodes=num_nodes,
        num_skipped=num_skipped,
    )


def export_lexicon(data_dir: Union[str, Path], lang: str) -> BuildResult:
    """Build `tree-<lang>.txt` and `prob-<lang>.json` from `words-<lang>.txt`.

    Args:
        data_dir: Directory holding the language files
        lang: Language code
    """
    data_dir = Path(data_dir)
    start = time.perf_counter()

    config = LangConfig.load(data_dir / f'config-{lang}.json')
    result = build_lexicon(read_words(data_dir / f'words-{lang}.txt'), config)

    tree_text = result.trie.encode()
    (data_dir / f'tree-{lang}.txt').write_text(tree_text, encoding='utf-8')
    result.frequencies.save(data_dir / f'prob-{lang}.json')

    elapsed = time.perf_counter() - start
    logger.info(
        f"Tree data length: {len(tree_text) / 1024:.2f} kb, #words: {result.num_words}, "
        f"#nodes: {result.num_nodes}, time: {elapsed:.3f}s"
    )
    return result
