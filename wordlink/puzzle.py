from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

DIFFICULTY_TIERS = ("medium", "hard", "expert")


@dataclass(frozen=True)
class ThemeLabel:
    theme: str
    description: str
    difficulty: str

    @classmethod
    def generic(cls) -> "ThemeLabel":
        return cls(
            theme="Word Connections",
            description="Find the hidden connections between words",
            difficulty="medium",
        )

    @classmethod
    def from_payload(cls, payload) -> "ThemeLabel":
        """Build a label from the oracle's JSON; raises ValueError when the payload is unusable."""
        if not isinstance(payload, dict):
            raise ValueError("theme payload is not an object")
        theme = payload.get("theme")
        if not isinstance(theme, str) or not theme.strip():
            raise ValueError("theme payload has no theme name")
        description = payload.get("description")
        difficulty = payload.get("difficulty")
        difficulty = difficulty.strip().lower() if isinstance(difficulty, str) else ""
        return cls(
            theme=theme.strip(),
            description=description.strip() if isinstance(description, str) else "",
            difficulty=difficulty if difficulty in DIFFICULTY_TIERS else "hard",
        )


@dataclass(frozen=True)
class Puzzle:
    start_word: str
    target_word: str
    hidden_path: Tuple[str, ...]
    theme: str
    description: str
    difficulty: str
    generated_at: datetime

    @classmethod
    def assemble(cls, path, label: ThemeLabel, generated_at: Optional[datetime] = None) -> "Puzzle":
        path = tuple(path)
        if len(path) < 2:
            raise ValueError("a puzzle path needs at least a start and a target word")
        return cls(
            start_word=path[0],
            target_word=path[-1],
            hidden_path=path,
            theme=label.theme,
            description=label.description,
            difficulty=label.difficulty,
            generated_at=generated_at or datetime.now(timezone.utc),
        )

    @property
    def min_expected_steps(self) -> int:
        return len(self.hidden_path) - 1

    @property
    def game_date(self) -> str:
        return self.generated_at.date().isoformat()

    def public_view(self) -> Dict:
        """Everything a player may see; the solution path is left out."""
        return {
            "game_date": self.game_date,
            "start_word": self.start_word,
            "target_word": self.target_word,
            "theme": self.theme,
            "theme_description": self.description,
            "difficulty": self.difficulty,
            "min_expected_steps": self.min_expected_steps,
        }

    def to_dict(self) -> Dict:
        data = self.public_view()
        data["hidden_solution"] = list(self.hidden_path)
        data["generated_at"] = self.generated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "Puzzle":
        path = data.get("hidden_solution")
        if not isinstance(path, list) or len(path) < 2:
            raise ValueError("puzzle has no usable hidden solution")
        if path[0] != data.get("start_word") or path[-1] != data.get("target_word"):
            raise ValueError("hidden solution does not run from start word to target word")
        generated_at = data.get("generated_at")
        try:
            when = datetime.fromisoformat(generated_at) if generated_at else None
        except ValueError:
            when = None
        if when is None and data.get("game_date"):
            when = datetime.fromisoformat(f"{data['game_date']}T00:00:00+00:00")
        if when is None:
            when = datetime.now(timezone.utc)
        return cls(
            start_word=path[0],
            target_word=path[-1],
            hidden_path=tuple(path),
            theme=data.get("theme") or ThemeLabel.generic().theme,
            description=data.get("theme_description", ""),
            difficulty=data.get("difficulty") or "hard",
            generated_at=when,
        )
