import time
import random
import asyncio
import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from .associations import AssociationProvider
from .call_budget import CallBudget
from .errors import NoPathFound, SearchCancelled, WordLinkError
from .monitoring import monitor
from .path_search import PathSearchEngine, SearchBudgets
from .puzzle import Puzzle, ThemeLabel
from .text_utils import normalize_word

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedPolicy:
    """How to choose the start word: explicit, else random cached word, else the default."""

    seed_word: Optional[str] = None
    default_word: str = "environment"
    exclude: FrozenSet[str] = frozenset()


class PuzzleAssembler:
    """Picks a seed, runs the path search, labels the result and packages a Puzzle.

    Only one generation runs at a time; callers arriving while one is in
    flight wait for it and receive the same puzzle (or the same error).
    """

    def __init__(self, provider: AssociationProvider, rng: Optional[random.Random] = None):
        self.provider = provider
        self.rng = rng or random.Random()
        self._in_flight: Optional[asyncio.Future] = None
        self.last_stats = None

    @property
    def generating(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def pick_seed(self, policy: Optional[SeedPolicy] = None) -> str:
        policy = policy or SeedPolicy()
        if policy.seed_word and policy.seed_word.strip():
            seed = normalize_word(policy.seed_word)
            logger.info(f"Using requested seed word: \"{seed}\"")
            return seed
        excluded = {normalize_word(w) for w in policy.exclude}
        cached = sorted(w for w in self.provider.cache.words() if w not in excluded)
        if cached:
            seed = self.rng.choice(cached)
            logger.info(f"Using random word from cache: \"{seed}\"")
            return seed
        logger.info(f"Cache is empty, using default word: \"{policy.default_word}\"")
        return normalize_word(policy.default_word)

    async def generate(self, seed_policy: Optional[SeedPolicy] = None,
                       budgets: Optional[SearchBudgets] = None,
                       budget: Optional[CallBudget] = None,
                       cancel_event=None,
                       timeout_s: Optional[float] = None) -> Puzzle:
        if self.generating:
            logger.info("Puzzle generation already in progress; waiting for its result")
            return await asyncio.shield(self._in_flight)

        task = asyncio.ensure_future(self._generate(seed_policy, budgets, budget, cancel_event, timeout_s))
        self._in_flight = task
        task.add_done_callback(self._finished)
        return await asyncio.shield(task)

    def _finished(self, task: asyncio.Future) -> None:
        if self._in_flight is task:
            self._in_flight = None
        if not task.cancelled():
            # Retrieve so a failure nobody awaited is not reported as unhandled
            task.exception()

    async def _generate(self, seed_policy, budgets, budget, cancel_event, timeout_s) -> Puzzle:
        started = time.monotonic()
        provider = self.provider.with_budget(budget) if budget is not None else self.provider
        seed = self.pick_seed(seed_policy)
        logger.info("Generating new puzzle using graph traversal approach...")

        timer = None
        if timeout_s is not None:
            cancel_event = cancel_event or asyncio.Event()
            timer = asyncio.get_running_loop().call_later(timeout_s, cancel_event.set)
        engine = PathSearchEngine(provider, rng=self.rng)
        try:
            result = await engine.find_path(seed, budgets or SearchBudgets(), cancel_event)
        finally:
            if timer is not None:
                timer.cancel()
        stats = engine.last_stats
        self.last_stats = stats

        if result is None:
            if stats.quota_error is not None:
                monitor.track_error('QuotaExceeded')
                raise stats.quota_error
            if stats.cancelled:
                monitor.track_error('SearchCancelled')
                raise SearchCancelled(seed, stats)
            monitor.track_error('NoPathFound')
            raise NoPathFound(seed, stats)

        label = await self._theme(provider, result.path[0], result.target)
        puzzle = Puzzle.assemble(result.path, label)

        duration_ms = (time.monotonic() - started) * 1000
        monitor.track_generation(duration_ms, puzzle.min_expected_steps)
        logger.info(
            f"PUZZLE GENERATED: {puzzle.start_word} -> {puzzle.target_word} "
            f"({puzzle.theme}, {puzzle.difficulty}); path: {' -> '.join(puzzle.hidden_path)}; "
            f"min steps: {puzzle.min_expected_steps}; took {duration_ms:.0f} ms"
        )
        return puzzle

    async def _theme(self, provider: AssociationProvider, start_word: str, target_word: str) -> ThemeLabel:
        try:
            payload = await provider.adapter.theme_label(start_word, target_word)
            label = ThemeLabel.from_payload(payload)
        except (WordLinkError, ValueError) as e:
            logger.error(f"Theme generation failed for {start_word} -> {target_word}: {e}; using generic theme")
            return ThemeLabel.generic()
        logger.info(f"Generated theme: {label.theme} ({label.difficulty})")
        return label
