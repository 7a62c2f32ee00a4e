import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def _average(values: List[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def _count(value, name: str, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be a number")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


@dataclass
class PlayStats:
    """Completions recorded for one puzzle."""

    total_plays: int = 0
    completions: List[int] = field(default_factory=list)
    back_steps: List[int] = field(default_factory=list)
    total_steps: List[int] = field(default_factory=list)

    def record(self, steps: int, back_steps: int = 0, total_steps: Optional[int] = None) -> None:
        steps = _count(steps, "steps", 1)
        back_steps = _count(back_steps, "back_steps", 0)
        total_steps = steps if total_steps is None else _count(total_steps, "total_steps", 1)
        self.total_plays += 1
        self.completions.append(steps)
        self.back_steps.append(back_steps)
        self.total_steps.append(total_steps)

    def to_dict(self) -> Dict:
        return {
            "total_plays": self.total_plays,
            "completions": list(self.completions),
            "average_steps": _average(self.completions),
            "back_steps": list(self.back_steps),
            "average_back_steps": _average(self.back_steps),
            "total_steps": list(self.total_steps),
            "average_total_steps": _average(self.total_steps),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "PlayStats":
        def ints(key):
            values = data.get(key)
            return [v for v in values if isinstance(v, int)] if isinstance(values, list) else []

        completions = ints("completions")
        plays = data.get("total_plays")
        return cls(
            total_plays=plays if isinstance(plays, int) else len(completions),
            completions=completions,
            back_steps=ints("back_steps"),
            total_steps=ints("total_steps"),
        )


class GameStats:
    """Play statistics per puzzle, kept in one JSON file keyed by puzzle id."""

    def __init__(self, stats_file: str = "data/game-stats.json"):
        self.stats_file = Path(stats_file)
        self._load_stats()

    def _load_stats(self) -> None:
        """Load statistics from file or start empty."""
        self.stats: Dict[str, PlayStats] = {}
        if not self.stats_file.exists():
            return
        try:
            with open(self.stats_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading game stats from {self.stats_file}: {e}")
            return
        if not isinstance(data, dict):
            logger.error('Invalid game stats file format. Starting with empty stats.')
            return
        self.stats = {k: PlayStats.from_dict(v) for k, v in data.items() if isinstance(v, dict)}

    def _save_stats(self) -> None:
        try:
            self.stats_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.stats_file, 'w', encoding='utf-8') as f:
                json.dump({k: v.to_dict() for k, v in self.stats.items()}, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving game stats to {self.stats_file}: {e}")

    def for_puzzle(self, puzzle_id: str) -> PlayStats:
        return self.stats.get(puzzle_id) or PlayStats()

    def record_game(self, puzzle_id: str, steps: int, back_steps: int = 0,
                    total_steps: Optional[int] = None) -> PlayStats:
        """Record a completed game; raises ValueError for bad step counts."""
        stats = self.stats.get(puzzle_id) or PlayStats()
        stats.record(steps, back_steps, total_steps)
        self.stats[puzzle_id] = stats
        self._save_stats()
        logger.info(
            f"Game completed on {puzzle_id} in {steps} steps "
            f"({stats.total_plays} plays, average {_average(stats.completions):.1f})"
        )
        return stats
