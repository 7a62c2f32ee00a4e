"""
Service facade that wires the puzzle engine together.

Owns the shared association cache, the daily call budget and the current
puzzle. Both the HTTP layer and the command-line generator go through it.
"""

import random
import logging
from typing import Dict, List, Optional, Union

from .association_cache import Association, AssociationCache
from .associations import AssociationProvider
from .cache_store import JsonCacheStore
from .call_budget import CallBudget
from .config import Settings
from .game_stats import GameStats
from .hints import HintProvider
from .llm_oracle import OpenRouterOracle
from .monitoring import monitor
from .oracle_adapter import AssociationOracleAdapter
from .path_search import SearchBudgets
from .puzzle import Puzzle
from .puzzle_assembler import PuzzleAssembler, SeedPolicy
from .puzzle_repository import PuzzleRepository
from .text_utils import normalize_word

logger = logging.getLogger(__name__)


class WordLinkService:
    def __init__(self, settings: Optional[Settings] = None, oracle=None,
                 rng: Optional[random.Random] = None):
        self.settings = settings or Settings.from_env()
        self.rng = rng or random.Random()

        monitor.enabled = self.settings.enable_cloudwatch
        monitor.environment = self.settings.environment
        monitor.namespace = f"WordLink/{self.settings.environment}"

        self.cache = AssociationCache()
        self.store = JsonCacheStore(self.settings.cache_file_path)
        self.budget = CallBudget(self.settings.daily_api_limit, name="daily", daily=True)
        self.oracle = oracle if oracle is not None else OpenRouterOracle.from_settings(self.settings)
        self.adapter = AssociationOracleAdapter(self.oracle, self.budget)
        self.provider = AssociationProvider(self.cache, self.adapter)
        self.assembler = PuzzleAssembler(self.provider, rng=self.rng)
        self.repository = PuzzleRepository(self.settings.puzzles_dir)
        self.play_stats = GameStats(self.settings.stats_file_path)
        self.hints = HintProvider(self.adapter)
        self.current_puzzle: Optional[Puzzle] = None

    def startup(self) -> None:
        """Load the cache snapshot and the most recently saved puzzle."""
        loaded = self.cache.load_snapshot(self.store.load_snapshot())
        logger.info(f"Association cache ready with {loaded} words")
        self.current_puzzle = self.repository.get_latest_puzzle()
        if self.current_puzzle is not None:
            logger.info(
                f"Current puzzle: {self.current_puzzle.start_word} -> {self.current_puzzle.target_word}"
            )
        else:
            logger.info("No saved puzzle available; generate one via the admin endpoint or CLI")

    def save_cache(self) -> bool:
        saved = self.store.save_snapshot(self.cache.snapshot())
        if saved:
            self.cache.mark_saved()
        return saved

    async def shutdown_oracle(self) -> None:
        aclose = getattr(self.oracle, "aclose", None)
        if aclose is not None:
            await aclose()

    async def shutdown(self) -> None:
        self.save_cache()
        await self.shutdown_oracle()

    async def generate_puzzle(self, seed_policy: Optional[SeedPolicy] = None,
                              budgets: Optional[SearchBudgets] = None) -> Puzzle:
        """Generate, persist and publish a new puzzle.

        On failure the previous puzzle stays current and the error propagates.
        A caller arriving while a generation runs gets that run's result; only
        the caller that started it saves the puzzle.
        """
        if self.assembler.generating:
            return await self.assembler.generate()
        if seed_policy is None:
            exclude = frozenset()
            if self.current_puzzle is not None:
                exclude = frozenset({self.current_puzzle.start_word, self.current_puzzle.target_word})
            seed_policy = SeedPolicy(default_word=self.settings.default_seed_word, exclude=exclude)
        generation_budget = self.budget.child(self.settings.generation_api_limit, name="generation")
        try:
            puzzle = await self.assembler.generate(
                seed_policy,
                budgets or self.settings.search_budgets(),
                budget=generation_budget,
                timeout_s=self.settings.search_timeout_s,
            )
        finally:
            monitor.track_api_quota(self.budget.remaining)
            logger.info(f"Generation used {generation_budget.count} API calls")
        self.repository.save_puzzle(puzzle)
        self.current_puzzle = puzzle
        self.hints.clear()
        return puzzle

    async def get_associations(self, word, detailed: bool = False) -> Union[List[str], List[Association]]:
        """Associations for a word played in the game, fetched through the shared cache.

        The word is keyed exactly as generation keys it, so anything the
        engine already fetched is served without another oracle call.
        """
        if not isinstance(word, str) or not word.strip():
            raise ValueError("Word is required")
        record = await self.provider.get_record(normalize_word(word))
        monitor.track_api_quota(self.budget.remaining)
        if detailed:
            if record.details is not None:
                return list(record.details)
            return [Association(w) for w in record.words]
        return list(record.words)

    def _puzzle_id(self) -> str:
        return self.repository.filename_for(self.current_puzzle)

    def game_view(self) -> Optional[Dict]:
        """Public view of the current puzzle plus its play statistics."""
        if self.current_puzzle is None:
            return None
        view = self.current_puzzle.public_view()
        view["stats"] = self.play_stats.for_puzzle(self._puzzle_id()).to_dict()
        return view

    def record_completion(self, steps: int, back_steps: int = 0,
                          total_steps: Optional[int] = None) -> Optional[Dict]:
        if self.current_puzzle is None:
            return None
        stats = self.play_stats.record_game(self._puzzle_id(), steps, back_steps, total_steps)
        return stats.to_dict()

    async def get_hint(self, progress: Optional[List[str]] = None) -> Optional[Dict]:
        """A hint for the player's position; the hidden path never leaves the server."""
        if self.current_puzzle is None:
            return None
        hint = await self.hints.get_hint(self.current_puzzle, progress)
        monitor.track_api_quota(self.budget.remaining)
        return hint

    def admin_solution(self) -> Optional[Dict]:
        if self.current_puzzle is None:
            return None
        return self.current_puzzle.to_dict()

    def cache_stats(self) -> Dict:
        stats = self.cache.stats()
        monitor.track_cache(stats["hits"], stats["misses"])
        stats.update(self.hints.stats())
        return stats

    def api_stats(self) -> Dict:
        status = self.budget.status()
        status["generating"] = self.assembler.generating
        return status
