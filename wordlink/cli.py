#!/usr/bin/env python3
"""
Standalone puzzle generator.
Generates one puzzle, populating the association cache as it goes, and
writes the result to disk.
"""

import sys
import json
import random
import asyncio
import argparse
import logging
from dataclasses import replace
from pathlib import Path

from .config import Settings
from .errors import WordLinkError
from .monitoring import configure_logging
from .path_search import SearchBudgets
from .puzzle_assembler import SeedPolicy
from .service import WordLinkService

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("data") / "generated-puzzle.json"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Generate a word-chain puzzle')
    parser.add_argument('--limit', type=int, default=None,
                        help='Maximum oracle calls for this run (default: GENERATION_API_LIMIT)')
    parser.add_argument('--seed', default=None,
                        help='Start word for the search (default: random cached word)')
    parser.add_argument('--min-length', type=int, default=None,
                        help='Minimum number of words on the path')
    parser.add_argument('--max-depth', type=int, default=None,
                        help='Maximum number of words on an explored path')
    parser.add_argument('--max-expansions', type=int, default=None,
                        help='Maximum frontier entries to expand')
    parser.add_argument('--diversity-floor', type=int, default=None,
                        help='Minimum unvisited associations needed to keep a branch')
    parser.add_argument('--rng-seed', type=int, default=None,
                        help='Seed for the random number generator (reproducible runs)')
    parser.add_argument('--output', default=str(DEFAULT_OUTPUT),
                        help='Where to write the generated puzzle JSON')
    return parser.parse_args(argv)


def build_budgets(args, settings: Settings) -> SearchBudgets:
    defaults = settings.search_budgets()
    return SearchBudgets(
        min_path_length=args.min_length if args.min_length is not None else defaults.min_path_length,
        max_depth=args.max_depth if args.max_depth is not None else defaults.max_depth,
        max_expansions=args.max_expansions if args.max_expansions is not None else defaults.max_expansions,
        diversity_floor=args.diversity_floor if args.diversity_floor is not None else defaults.diversity_floor,
    )


async def _run(args, settings: Settings, oracle=None) -> int:
    service = WordLinkService(settings, oracle=oracle, rng=random.Random(args.rng_seed))
    service.cache.load_snapshot(service.store.load_snapshot())
    initial_size = len(service.cache)
    print(f"Starting puzzle generation with API call limit: {settings.generation_api_limit}")
    print(f"Initial cache size: {initial_size} entries")

    policy = SeedPolicy(seed_word=args.seed, default_word=settings.default_seed_word)
    try:
        puzzle = await service.generate_puzzle(policy, build_budgets(args, settings))
    except WordLinkError as e:
        logger.error(f"Failed to generate puzzle: {e}")
        print(f"Failed to generate puzzle: {e}", file=sys.stderr)
        return 1
    finally:
        if service.save_cache():
            print(f"Cache saved with {len(service.cache)} entries")
        await service.shutdown_oracle()

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, 'w', encoding='utf-8') as f:
        json.dump(puzzle.to_dict(), f, indent=2, ensure_ascii=False)
    print(f"Puzzle saved to {output}")

    stats = service.cache.stats()
    print("\n=== EXECUTION SUMMARY ===")
    print(f"Puzzle: {' -> '.join(puzzle.hidden_path)} ({puzzle.theme}, {puzzle.difficulty})")
    print(f"API calls made: {service.budget.count}/{settings.generation_api_limit}")
    print(f"Final cache size: {len(service.cache)} entries")
    print(f"Cache hits: {stats['hits']}, misses: {stats['misses']}")
    return 0


def main(argv=None, oracle=None) -> int:
    args = parse_args(argv)
    configure_logging()
    settings = Settings.from_env()
    if args.limit is not None:
        settings = replace(settings, generation_api_limit=args.limit)
    try:
        build_budgets(args, settings)
    except ValueError as e:
        print(f"Invalid search limits: {e}", file=sys.stderr)
        return 2
    return asyncio.run(_run(args, settings, oracle))


if __name__ == '__main__':
    sys.exit(main())
