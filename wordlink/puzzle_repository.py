"""
Puzzle repository: saved puzzles as one JSON file each.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from .puzzle import Puzzle

logger = logging.getLogger(__name__)


class PuzzleRepository:
    def __init__(self, directory):
        self.directory = Path(directory)

    def _ensure_dir(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def filename_for(puzzle: Puzzle) -> str:
        stamp = puzzle.generated_at.strftime('%Y-%m-%d_%H-%M-%S')
        start = ''.join(c if c.isalnum() else '-' for c in puzzle.start_word)
        target = ''.join(c if c.isalnum() else '-' for c in puzzle.target_word)
        return f"{stamp}_{start}_{target}.json"

    def save_puzzle(self, puzzle: Puzzle) -> str:
        """Write the puzzle (solution included) and return its filename."""
        self._ensure_dir()
        filename = self.filename_for(puzzle)
        with open(self.directory / filename, 'w', encoding='utf-8') as f:
            json.dump(puzzle.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info(f"Puzzle saved to repository: {filename}")
        return filename

    def list_puzzles(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.name for p in self.directory.glob('*.json'))

    def load_puzzle(self, filename: str) -> Optional[Puzzle]:
        path = self.directory / Path(filename).name
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return Puzzle.from_dict(data)
        except (OSError, json.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Error loading puzzle {filename}: {e}")
            return None

    def get_latest_puzzle(self) -> Optional[Puzzle]:
        for filename in reversed(self.list_puzzles()):
            puzzle = self.load_puzzle(filename)
            if puzzle is not None:
                return puzzle
        return None
