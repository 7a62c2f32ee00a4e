from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class PlayStatsResponse(BaseModel):
    total_plays: int = 0
    completions: List[int] = []
    average_steps: float = 0.0
    back_steps: List[int] = []
    average_back_steps: float = 0.0
    total_steps: List[int] = []
    average_total_steps: float = 0.0


class PuzzleView(BaseModel):
    game_date: str
    start_word: str
    target_word: str
    theme: str
    theme_description: str = ""
    difficulty: str
    min_expected_steps: int = Field(..., ge=1)


class GameResponse(PuzzleView):
    """Public view of the current puzzle; the solution path is never included."""

    stats: PlayStatsResponse = Field(default_factory=PlayStatsResponse)


class SolutionResponse(PuzzleView):
    hidden_solution: List[str]
    generated_at: str


class AssociationDetail(BaseModel):
    word: str
    hint: Optional[str] = None


class AssociationsResponse(BaseModel):
    word: str
    associations: List[str]
    detailed: Optional[List[AssociationDetail]] = None


class GenerateRequest(BaseModel):
    seed_word: Optional[str] = Field(None, description="Start the search from this word")
    min_path_length: Optional[int] = Field(None, ge=2)
    max_depth: Optional[int] = Field(None, ge=1)
    max_expansions: Optional[int] = Field(None, ge=1)
    diversity_floor: Optional[int] = Field(None, ge=0)


class GenerateResponse(BaseModel):
    success: bool = True
    message: str
    game: SolutionResponse


class CacheStatsResponse(BaseModel):
    size: int
    detailed_size: int
    hits: int
    misses: int
    shared_waits: int
    hit_rate: float
    in_flight: int
    epoch: int
    last_saved: Optional[datetime] = None
    last_loaded: Optional[datetime] = None
    last_cleared: Optional[datetime] = None
    hint_size: int = 0
    hint_hits: int = 0
    hint_misses: int = 0


class ApiStatsResponse(BaseModel):
    name: str
    count: int
    limit: int
    remaining: int
    usage_percentage: float
    last_reset: str
    warning: Optional[Dict[str, str]] = None
    generating: bool = False


class CompletionRequest(BaseModel):
    steps: int = Field(..., ge=1)
    back_steps: int = Field(0, ge=0)
    total_steps: Optional[int] = Field(None, ge=1)


class CompletionResponse(BaseModel):
    message: str
    stats: PlayStatsResponse


class HintResponse(BaseModel):
    hint: str
    cached: bool = False
    limited: bool = False
