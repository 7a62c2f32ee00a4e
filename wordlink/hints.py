"""
Gameplay hints for the current puzzle.

The oracle sees the hidden solution so it can steer the player, but only the
hint text ever leaves this module. Hints are memoized per
(start word, target word, current word) and metered by the daily budget;
once that budget is spent players get a generic hint instead.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from .errors import QuotaExceeded
from .oracle_adapter import AssociationOracleAdapter
from .puzzle import Puzzle
from .text_utils import normalize_word

logger = logging.getLogger(__name__)

GENERIC_HINT = "Look for common associations between words. Try a different path if you're stuck."


@dataclass(frozen=True)
class HintContext:
    start_word: str
    target_word: str
    progress: Tuple[str, ...]
    theme: str
    difficulty: str
    min_expected_steps: int
    next_step: Optional[str] = None
    starting_out: bool = False
    close: bool = False

    @property
    def current_word(self) -> str:
        return self.progress[-1]

    @classmethod
    def build(cls, puzzle: Puzzle, progress: Optional[Sequence[str]] = None) -> "HintContext":
        """Raises ValueError when a progress entry is not a word."""
        words = []
        for word in progress or ():
            if not isinstance(word, str) or not word.strip():
                raise ValueError("progress must be a list of words")
            words.append(normalize_word(word))
        if not words:
            words = [puzzle.start_word]

        current = words[-1]
        path = puzzle.hidden_path
        next_step = None
        close = False
        if current in path:
            index = path.index(current)
            close = index >= len(path) - 2
            if index < len(path) - 1:
                next_step = path[index + 1]
        return cls(
            start_word=puzzle.start_word,
            target_word=puzzle.target_word,
            progress=tuple(words),
            theme=puzzle.theme,
            difficulty=puzzle.difficulty,
            min_expected_steps=puzzle.min_expected_steps,
            next_step=next_step,
            starting_out=len(words) == 1,
            close=close,
        )


class HintProvider:
    def __init__(self, adapter: AssociationOracleAdapter):
        self.adapter = adapter
        self._hints: Dict[Tuple[str, str, str], str] = {}
        self.hits = 0
        self.misses = 0

    def clear(self) -> None:
        self._hints.clear()

    def stats(self) -> Dict[str, int]:
        return {"hint_size": len(self._hints), "hint_hits": self.hits, "hint_misses": self.misses}

    async def get_hint(self, puzzle: Puzzle, progress: Optional[Sequence[str]] = None) -> Dict:
        context = HintContext.build(puzzle, progress)
        key = (context.start_word, context.target_word, context.current_word)
        cached = self._hints.get(key)
        if cached is not None:
            self.hits += 1
            logger.info(f"Hint cache HIT for {'-'.join(key)} ({self.hits} hits, {self.misses} misses)")
            return {"hint": cached, "cached": True, "limited": False}

        self.misses += 1
        logger.info(f"Hint cache MISS for {'-'.join(key)} ({self.hits} hits, {self.misses} misses)")
        try:
            hint = await self.adapter.hint(context)
        except QuotaExceeded as e:
            logger.warning(f"Hint request denied: {e}")
            return {"hint": GENERIC_HINT, "cached": False, "limited": True}
        self._hints[key] = hint
        return {"hint": hint, "cached": False, "limited": False}
