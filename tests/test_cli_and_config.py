import json

import pytest

from wordlink import cli
from wordlink.config import Settings
from wordlink.rate_limiter import RateLimiter, TokenBucket
from fakes import FakeOracle, layered_graph


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CACHE_FILE_PATH", str(tmp_path / "association-cache.json"))
    monkeypatch.setenv("PUZZLES_DIR", str(tmp_path / "puzzles"))
    monkeypatch.setenv("STATS_FILE_PATH", str(tmp_path / "game-stats.json"))
    monkeypatch.setenv("SEARCH_TIMEOUT_S", "0")
    monkeypatch.setenv("ENABLE_CLOUDWATCH", "false")
    monkeypatch.delenv("LOG_DIR", raising=False)
    return tmp_path


@pytest.mark.unit
def test_cli_generates_and_writes_files(cli_env, capsys):
    output = cli_env / "out" / "puzzle.json"
    code = cli.main(["--seed", "s", "--rng-seed", "3", "--output", str(output)],
                    oracle=FakeOracle(layered_graph()))
    assert code == 0

    puzzle = json.loads(output.read_text(encoding="utf-8"))
    assert puzzle["start_word"] == "s"
    assert len(puzzle["hidden_solution"]) == 5
    assert len(list((cli_env / "puzzles").glob("*.json"))) == 1
    cache = json.loads((cli_env / "association-cache.json").read_text(encoding="utf-8"))
    assert "s" in cache
    assert "EXECUTION SUMMARY" in capsys.readouterr().out


@pytest.mark.unit
def test_cli_saves_cache_even_when_generation_fails(cli_env):
    output = cli_env / "puzzle.json"
    code = cli.main(["--seed", "s", "--limit", "2", "--output", str(output)],
                    oracle=FakeOracle(layered_graph()))
    assert code == 1
    assert not output.exists()
    cache = json.loads((cli_env / "association-cache.json").read_text(encoding="utf-8"))
    # the seed and one first-layer word were fetched before the limit hit
    plain = [k for k in cache if not k.endswith("_detailed")]
    assert "s" in plain
    assert len(plain) == 2


@pytest.mark.unit
def test_cli_rejects_invalid_limits(cli_env):
    assert cli.main(["--min-length", "1"], oracle=FakeOracle({})) == 2


@pytest.mark.unit
def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("DAILY_API_LIMIT", "25")
    monkeypatch.setenv("MIN_PATH_LENGTH", "not-a-number")
    monkeypatch.setenv("SEARCH_TIMEOUT_S", "0")
    monkeypatch.setenv("ADMIN_SECRET", "  ")
    monkeypatch.setenv("ENABLE_CLOUDWATCH", "Yes")
    settings = Settings.from_env()
    assert settings.daily_api_limit == 25
    assert settings.min_path_length == 5
    assert settings.search_timeout_s is None
    assert settings.admin_secret is None
    assert settings.enable_cloudwatch is True

    budgets = settings.search_budgets()
    assert budgets.max_expansions == settings.max_explorations
    assert budgets.diversity_floor == 3


@pytest.mark.unit
def test_token_bucket_refills_over_time():
    now = [1000.0]
    bucket = TokenBucket(capacity=2, fill_rate=1.0, clock=lambda: now[0])
    assert bucket.consume()
    assert bucket.consume()
    assert not bucket.consume()
    now[0] += 1.5
    assert bucket.consume()
    assert not bucket.consume()


@pytest.mark.unit
def test_rate_limiter_cleans_up_idle_clients():
    now = [0.0]
    limiter = RateLimiter(requests_per_hour=1, idle_seconds=60, clock=lambda: now[0])
    allowed, limits = limiter.check_rate_limit("1.2.3.4")
    assert allowed and limits["limit"] == 1
    allowed, _ = limiter.check_rate_limit("1.2.3.4")
    assert not allowed
    now[0] += 120
    assert limiter.cleanup() == 1
    assert limiter.ip_buckets == {}


@pytest.mark.unit
def test_rate_limiter_drops_idle_clients_while_serving_requests():
    now = [0.0]
    limiter = RateLimiter(requests_per_hour=5, idle_seconds=60, cleanup_interval=130, clock=lambda: now[0])
    limiter.check_rate_limit("10.0.0.1")
    now[0] = 120
    limiter.check_rate_limit("10.0.0.2")
    assert set(limiter.ip_buckets) == {"10.0.0.1", "10.0.0.2"}

    # The next request after the interval sweeps out clients idle for over a minute
    now[0] = 150
    limiter.check_rate_limit("10.0.0.3")
    assert set(limiter.ip_buckets) == {"10.0.0.2", "10.0.0.3"}

    now[0] = 200
    limiter.check_rate_limit("10.0.0.3")
    assert "10.0.0.2" in limiter.ip_buckets
