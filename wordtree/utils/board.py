"""Seeded generation of tile boards from the frequency model."""

import hashlib
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import torch

from wordtree.lexicon import Lexicon
from wordtree.models.trie import random_index


logger = logging.getLogger(__name__)

# (row, column) offsets of cells filled before the current one
FIRST_RING: Tuple[Tuple[int, int], ...] = ((-1, -1), (-1, 0), (-1, 1), (0, -1))
SECOND_RING: Tuple[Tuple[int, int], ...] = (
    (-2, -2), (-2, -1), (-2, 0), (-2, 1), (-2, 2),
    (-1, -2), (-1, 2),
    (0, -2),
)

Board = List[List[str]]


@dataclass
class BoardConfig:
    """Board size and sampling weights."""
    rows: int = 12
    columns: int = 7
    pair_weight: float = 1.0
    # 1.0 disables repeat suppression
    repeat_weight: float = 0.4
    flatten_scale: float = 1.0
    two_rings: bool = True


def generator_from_seed(seed: Optional[str] = None) -> torch.Generator:
    """Random source for board generation.

    The same seed string always gives the same sequence, so players sharing
    a seed get the same board. Without a seed the generator is seeded
    non-deterministically.
    """
    generator = torch.Generator()
    if seed is None:
        generator.seed()
    else:
        digest = hashlib.sha256(seed.encode('utf-8')).digest()
        generator.manual_seed(int.from_bytes(digest[:8], 'big') >> 1)
    return generator


def neighbor_tokens(board: Board, row: int, column: int, two_rings: bool = False) -> List[str]:
    """Tokens of the already generated cells around (row, column)."""
    offsets: Sequence[Tuple[int, int]] = FIRST_RING + SECOND_RING if two_rings else FIRST_RING
    tokens = []
    for d_row, d_col in offsets:
        r, c = row + d_row, column + d_col
        if 0 <= r < len(board) and 0 <= c < len(board[r]):
            tokens.append(board[r][c])
    return tokens


def generate_board(
    lexicon: Lexicon,
    config: Optional[BoardConfig] = None,
    rng: Optional[torch.Generator] = None,
) -> Board:
    """Fill a board row by row, each cell conditioned on its filled neighbours."""
    config = config or BoardConfig()
    board: Board = []
    for row in range(config.rows):
        line: List[str] = []
        board.append(line)
        for column in range(config.columns):
            neighbors = neighbor_tokens(board, row, column, config.two_rings)
            line.append(lexicon.sample_token_given_neighbors(
                neighbors,
                pair_weight=config.pair_weight,
                repeat_weight=config.repeat_weight,
                flatten_scale=config.flatten_scale,
                rng=rng,
            ))
    logger.debug(f"Generated {config.rows}x{config.columns} board")
    return board


def format_board(board: Board, lexicon: Lexicon) -> str:
    width = max((len(lexicon.readable_form(t)) for line in board for t in line), default=1)
    return '\n'.join(
        f"{row}: " + ' '.join(lexicon.readable_form(t).ljust(width) for t in line).rstrip()
        for row, line in enumerate(board)
    )


def hide_random_letters(
    word: str,
    count: int,
    wildcard: str = '?',
    rng: Optional[torch.Generator] = None,
) -> str:
    """Replace `count` distinct random letters of `word` with `wildcard`.

    Works on characters, so one letter of a multi-letter tile can be hidden
    on its own.
    """
    chars = list(word)
    available = list(range(len(chars)))
    for _ in range(min(count, len(chars))):
        pos = available.pop(random_index(len(available), rng))
        chars[pos] = wildcard
    return ''.join(chars)
