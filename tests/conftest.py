import pytest

from wordlink.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openrouter_api_key=None,
        cache_file_path=str(tmp_path / "cache" / "association-cache.json"),
        puzzles_dir=str(tmp_path / "puzzles"),
        stats_file_path=str(tmp_path / "game-stats.json"),
        default_seed_word="s",
        search_timeout_s=None,
    )
