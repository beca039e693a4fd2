"""Command-line interface for building and exploring a lexicon."""

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from wordtree.data.builder import export_lexicon
from wordtree.lexicon import Lexicon, LexiconLoadError, LexiconSource
from wordtree.utils.board import (
    BoardConfig,
    format_board,
    generate_board,
    generator_from_seed,
    hide_random_letters,
)


logger = logging.getLogger(__name__)


def setup_logging(level=logging.INFO):
    """Configure logging."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def load_lexicon(args) -> Lexicon:
    """Load the lexicon artifacts named by the command line."""
    lexicon = Lexicon()
    lexicon.load(LexiconSource(args.data_dir, args.lang))
    return lexicon


def build(args):
    """Build the tree and frequency files from the word list."""
    result = export_lexicon(Path(args.data_dir), args.lang)
    print(f"#words: {result.num_words}, #nodes: {result.num_nodes}, skipped: {result.num_skipped}")


def check(args):
    """Print random words, a completion chain and a wildcard expansion."""
    lexicon = load_lexicon(args)
    rng = generator_from_seed(args.seed)
    min_length = lexicon.config.minimum_word

    print('Random words:')
    for length in range(min_length, args.max_length + 1):
        word = lexicon.random_word(length, rng)
        if not word:
            break
        print(length, word)

    word = lexicon.random_word(min_length, rng)
    print(f"\nCompletion: (random word {word!r})")
    while word:
        options = lexicon.next_tokens_after(word)
        print(f"Possible tokens after {word!r}: {options}")
        word = word + options[0] if options else None

    word = lexicon.random_word(7, rng)
    if word:
        pattern = hide_random_letters(word, 3, lexicon.alphabet.wildcard, rng)
        print(f"\nWildcard word {pattern} completion: {sorted(lexicon.expand_wildcard_words(pattern))}")


def query(args):
    """Report word validity and possible next tokens."""
    lexicon = load_lexicon(args)
    for word in args.words:
        print(
            f"{word}: word={lexicon.is_valid_word(word)} "
            f"partial={lexicon.is_valid_partial_word(word)} "
            f"next={lexicon.next_tokens_after(word)}"
        )


def expand(args):
    """Expand a wildcard pattern into words or word prefixes."""
    lexicon = load_lexicon(args)
    wildcards = args.pattern.upper().count(lexicon.alphabet.wildcard)
    if wildcards > args.max_wildcards:
        raise ValueError(f"Pattern has {wildcards} wildcards, at most {args.max_wildcards} allowed")

    if args.partials:
        results = lexicon.expand_wildcard_partials(args.pattern)
    else:
        results = lexicon.expand_wildcard_words(args.pattern)
    for word in sorted(results):
        print(word)


def board(args):
    """Generate and print a seeded tile board."""
    lexicon = load_lexicon(args)
    config = BoardConfig(
        rows=args.rows,
        columns=args.columns,
        pair_weight=args.pair_weight,
        repeat_weight=args.repeat_weight,
        flatten_scale=args.flatten_scale,
        two_rings=not args.one_ring,
    )
    tiles = generate_board(lexicon, config, generator_from_seed(args.seed))
    print(format_board(tiles, lexicon))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Build and query a token word tree'
    )
    parser.add_argument(
        '--data-dir',
        type=str,
        default='data',
        help='Directory (or http(s) base URL) holding the language files'
    )
    parser.add_argument(
        '--lang',
        type=str,
        default='en',
        help='Language code'
    )
    parser.add_argument('--verbose', action='store_true')

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('build', help='Export tree and frequency files from words-<lang>.txt')

    check_parser = subparsers.add_parser('check', help='Print sample queries')
    check_parser.add_argument('--seed', type=str)
    check_parser.add_argument('--max-length', type=int, default=19)

    query_parser = subparsers.add_parser('query', help='Check words')
    query_parser.add_argument('words', nargs='+')

    expand_parser = subparsers.add_parser('expand', help='Expand a wildcard pattern')
    expand_parser.add_argument('pattern', type=str)
    expand_parser.add_argument('--partials', action='store_true')
    expand_parser.add_argument('--max-wildcards', type=int, default=4)

    board_parser = subparsers.add_parser('board', help='Generate a tile board')
    board_parser.add_argument('--seed', type=str)
    board_parser.add_argument('--rows', type=int, default=12)
    board_parser.add_argument('--columns', type=int, default=7)
    board_parser.add_argument('--pair-weight', type=float, default=1.0)
    board_parser.add_argument('--repeat-weight', type=float, default=0.4)
    board_parser.add_argument('--flatten-scale', type=float, default=1.0)
    board_parser.add_argument('--one-ring', action='store_true')

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    commands = {
        'build': build,
        'check': check,
        'query': query,
        'expand': expand,
        'board': board,
    }
    try:
        commands[args.command](args)
    except (LexiconLoadError, OSError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
