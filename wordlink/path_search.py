"""
Path search over the implicit association graph.

Edges are only known once the oracle has been asked about a word, so the
search is a depth-first walk over a stack of partial paths, with the stack
periodically re-sorted to favour deep paths near the minimum puzzle length.
Every word pushed onto the stack is marked visited for the rest of the run,
whether or not its branch ends up in the returned path.
"""

import random
import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import List, Optional, Sequence, Tuple

from .errors import QuotaExceeded, WordLinkError
from .target_validator import TargetValidator
from .text_utils import normalize_word

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchBudgets:
    min_path_length: int = 5  # words, seed and target included
    max_depth: int = 10
    max_expansions: int = 250
    diversity_floor: int = 3
    reprioritize_every: int = 20
    reprioritize_min_frontier: int = 10

    def __post_init__(self):
        for name in ("min_path_length", "max_depth", "max_expansions", "reprioritize_every"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
        for name in ("diversity_floor", "reprioritize_min_frontier"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.min_path_length < 2:
            raise ValueError("min_path_length must be at least 2 (a start and a target)")


@dataclass(frozen=True)
class FrontierEntry:
    path: Tuple[str, ...]
    depth: int

    @property
    def word(self) -> str:
        return self.path[-1]


@dataclass(frozen=True)
class PathResult:
    path: List[str]
    target: str

    @property
    def steps(self) -> int:
        return len(self.path) - 1


@dataclass
class SearchStats:
    seed: str
    expansions: int = 0
    targets_checked: int = 0
    abandoned_for_diversity: int = 0
    fetch_failures: int = 0
    max_frontier: int = 0
    quota_exhausted: bool = False
    quota_error: Optional[QuotaExceeded] = None
    cancelled: bool = False
    found: bool = False
    result_path: List[str] = field(default_factory=list)


def shuffled(items: Sequence[str], rng: random.Random) -> List[str]:
    """Fisher-Yates shuffle into a new list; `items` is left untouched."""
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randrange(i + 1)
        out[i], out[j] = out[j], out[i]
    return out


def _compare(a: FrontierEntry, b: FrontierEntry, min_length: int) -> int:
    # Negative means `a` sorts before `b`, i.e. `b` is popped first.
    if a.depth != b.depth:
        return a.depth - b.depth
    la, lb = len(a.path), len(b.path)
    if la < min_length and lb < min_length:
        return la - lb
    if la >= min_length and lb >= min_length:
        return lb - la
    return abs(lb - min_length) - abs(la - min_length)


def prioritize_frontier(frontier: Sequence[FrontierEntry], min_path_length: int) -> List[FrontierEntry]:
    """Return the frontier ordered so that the highest-priority entry is last (next to pop).

    Deeper paths win. Among equal depths, paths below the minimum length prefer
    to grow, paths at or past it prefer to stay short, and otherwise the one
    closer to the minimum wins. The sort is stable, so ties keep push order.
    """
    return sorted(frontier, key=cmp_to_key(lambda a, b: _compare(a, b, min_path_length)))


class PathSearchEngine:
    def __init__(self, source, validator=None, rng: Optional[random.Random] = None):
        self.source = source
        self.validator = validator or TargetValidator(source)
        self.rng = rng or random.Random()
        self.last_stats: Optional[SearchStats] = None

    async def find_path(self, seed: str, budgets: Optional[SearchBudgets] = None,
                        cancel_event=None) -> Optional[PathResult]:
        """Search from `seed` for a shortcut-free path of at least budgets.min_path_length words.

        Returns None when the frontier empties, the expansion budget runs out,
        the search is cancelled or the call quota is exhausted; last_stats says which.
        """
        budgets = budgets or SearchBudgets()
        stats = SearchStats(seed=seed)
        self.last_stats = stats
        logger.info(
            f"Starting path search from \"{seed}\" (min length {budgets.min_path_length}, "
            f"max depth {budgets.max_depth}, max expansions {budgets.max_expansions})"
        )

        frontier: List[FrontierEntry] = [FrontierEntry((seed,), 1)]
        visited = {normalize_word(seed)}

        while frontier and stats.expansions < budgets.max_expansions:
            if cancel_event is not None and cancel_event.is_set():
                stats.cancelled = True
                logger.info("Path finding aborted by cancellation")
                return None

            if (stats.expansions % budgets.reprioritize_every == 0
                    and len(frontier) > budgets.reprioritize_min_frontier):
                frontier = prioritize_frontier(frontier, budgets.min_path_length)

            entry = frontier.pop()
            stats.expansions += 1
            current = entry.word

            if stats.expansions % 10 == 0:
                logger.info(
                    f"Explored {stats.expansions}/{budgets.max_expansions} paths, frontier size: {len(frontier)}, "
                    f"targets checked: {stats.targets_checked}"
                )
                if len(entry.path) > 1:
                    logger.debug(f"Current path ({len(entry.path)} words): {' -> '.join(entry.path)}")

            if len(entry.path) >= budgets.min_path_length:
                stats.targets_checked += 1
                logger.debug(f"Validating potential target \"{current}\" at depth {entry.depth}")
                try:
                    valid = await self.validator.is_valid_target(current, entry.path[:-1])
                except QuotaExceeded as e:
                    stats.quota_exhausted = True
                    stats.quota_error = e
                    logger.warning(f"{e} - aborting path search during target validation")
                    return None
                if valid:
                    stats.found = True
                    stats.result_path = list(entry.path)
                    logger.info(
                        f"Found valid solution path: {' -> '.join(entry.path)} "
                        f"({len(entry.path) - 1} steps, target \"{current}\")"
                    )
                    return PathResult(list(entry.path), current)

            if entry.depth >= budgets.max_depth:
                continue

            try:
                associations = await self.source.get(current)
            except QuotaExceeded as e:
                stats.quota_exhausted = True
                stats.quota_error = e
                logger.warning(f"{e} - aborting path search")
                return None
            except WordLinkError as e:
                stats.fetch_failures += 1
                logger.error(f"Error getting associations for \"{current}\": {e}")
                continue

            candidates = []
            seen_here = set()
            for word in associations:
                key = normalize_word(word)
                if key in visited or key in seen_here:
                    continue
                seen_here.add(key)
                candidates.append(word)

            if len(candidates) < budgets.diversity_floor:
                stats.abandoned_for_diversity += 1
                logger.debug(
                    f"Abandoning path at \"{current}\" - only {len(candidates)} new associations remain "
                    f"[{stats.abandoned_for_diversity} abandoned]"
                )
                continue

            for word in shuffled(candidates, self.rng):
                visited.add(normalize_word(word))
                frontier.append(FrontierEntry(entry.path + (word,), entry.depth + 1))
            stats.max_frontier = max(stats.max_frontier, len(frontier))

        logger.info(
            f"No valid path found from \"{seed}\" after exploring {stats.expansions} paths, "
            f"abandoning {stats.abandoned_for_diversity} for diversity reasons"
        )
        return None
