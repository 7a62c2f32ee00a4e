import os
import logging
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv, find_dotenv

from .path_search import SearchBudgets

# Load shared .env (prefer project root) without overriding existing env
_ENV_PATH = find_dotenv(usecwd=True)
if _ENV_PATH:
    load_dotenv(_ENV_PATH)

logger = logging.getLogger(__name__)


def _env_str(name: str, default: str = "") -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid integer for {name}: {os.getenv(name)!r}")
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid number for {name}: {os.getenv(name)!r}")
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    """Runtime configuration. Use Settings.from_env() in the app; construct directly in tests."""

    openrouter_api_key: Optional[str] = None
    primary_model: str = "mistralai/mistral-small-24b-instruct-2501:free"
    fallback_model: str = "openai/gpt-4o"
    openrouter_referer: str = "https://example.com"
    openrouter_title: str = "WordLink Puzzle Generator"
    request_timeout_s: float = 30.0
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 1.0
    retry_max_delay_s: float = 10.0
    cooldown_429_s: float = 8.0

    daily_api_limit: int = 1000
    generation_api_limit: int = 100

    min_path_length: int = 5
    max_depth: int = 10
    max_explorations: int = 250
    diversity_floor: int = 3
    search_timeout_s: Optional[float] = 300.0
    default_seed_word: str = "environment"

    cache_file_path: str = os.path.join("data", "association-cache.json")
    puzzles_dir: str = os.path.join("data", "puzzles")
    stats_file_path: str = os.path.join("data", "game-stats.json")

    admin_secret: Optional[str] = None
    ip_rate_limit: int = 50

    environment: str = "Development"
    enable_cloudwatch: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        timeout = _env_float("SEARCH_TIMEOUT_S", 300.0)
        settings = cls(
            openrouter_api_key=_env_str("OPENROUTER_API_KEY") or None,
            primary_model=_env_str("OPENROUTER_MODEL_PRIMARY", cls.primary_model),
            fallback_model=_env_str("OPENROUTER_MODEL_FALLBACK", cls.fallback_model),
            openrouter_referer=_env_str("OPENROUTER_REFERER", cls.openrouter_referer),
            openrouter_title=_env_str("OPENROUTER_TITLE", cls.openrouter_title),
            request_timeout_s=_env_float("OPENROUTER_TIMEOUT_S", 30.0),
            retry_max_attempts=_env_int("OPENROUTER_RETRY_MAX_ATTEMPTS", 3),
            retry_base_delay_s=_env_float("OPENROUTER_RETRY_BASE_DELAY_S", 1.0),
            retry_max_delay_s=_env_float("OPENROUTER_RETRY_MAX_DELAY_S", 10.0),
            cooldown_429_s=_env_float("OPENROUTER_429_COOLDOWN_S", 8.0),
            daily_api_limit=_env_int("DAILY_API_LIMIT", 1000),
            generation_api_limit=_env_int("GENERATION_API_LIMIT", 100),
            min_path_length=_env_int("MIN_PATH_LENGTH", 5),
            max_depth=_env_int("MAX_DEPTH", 10),
            max_explorations=_env_int("MAX_EXPLORATIONS", 250),
            diversity_floor=_env_int("DIVERSITY_FLOOR", 3),
            search_timeout_s=timeout if timeout > 0 else None,
            default_seed_word=_env_str("DEFAULT_SEED_WORD", cls.default_seed_word) or cls.default_seed_word,
            cache_file_path=_env_str("CACHE_FILE_PATH", cls.cache_file_path),
            puzzles_dir=_env_str("PUZZLES_DIR", cls.puzzles_dir),
            stats_file_path=_env_str("STATS_FILE_PATH", cls.stats_file_path),
            admin_secret=_env_str("ADMIN_SECRET") or None,
            ip_rate_limit=_env_int("IP_RATE_LIMIT", 50),
            environment=_env_str("ENVIRONMENT", "Development"),
            enable_cloudwatch=_env_bool("ENABLE_CLOUDWATCH"),
        )
        logger.info(
            f"Loaded settings (env file: {_ENV_PATH or '[none]'}); "
            f"DAILY_API_LIMIT={settings.daily_api_limit}, GENERATION_API_LIMIT={settings.generation_api_limit}, "
            f"MIN_PATH_LENGTH={settings.min_path_length}, MAX_EXPLORATIONS={settings.max_explorations}"
        )
        return settings

    def search_budgets(self) -> SearchBudgets:
        return SearchBudgets(
            min_path_length=self.min_path_length,
            max_depth=self.max_depth,
            max_expansions=self.max_explorations,
            diversity_floor=self.diversity_floor,
        )
