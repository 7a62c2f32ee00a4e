import asyncio
import random

import pytest

from wordlink.errors import NoPathFound, QuotaExceeded, SearchCancelled
from wordlink.path_search import SearchBudgets
from wordlink.puzzle_assembler import PuzzleAssembler, SeedPolicy
from fakes import FakeOracle, layered_graph, make_provider


def _assembler(oracle, limit=1000, seed=0):
    provider, budget = make_provider(oracle, limit=limit)
    return PuzzleAssembler(provider, rng=random.Random(seed)), budget


@pytest.mark.unit
def test_generate_packages_path_and_theme():
    oracle = FakeOracle(layered_graph())
    assembler, _ = _assembler(oracle)
    puzzle = asyncio.run(assembler.generate(SeedPolicy(seed_word="S ")))

    assert puzzle.start_word == "s"
    assert len(puzzle.hidden_path) == 5
    assert puzzle.target_word == puzzle.hidden_path[-1]
    assert puzzle.min_expected_steps == 4
    assert puzzle.theme == "Forward Steps"
    assert puzzle.difficulty == "expert"
    assert oracle.theme_calls == 1
    assert assembler.last_stats.found
    assert "hidden_solution" not in puzzle.public_view()


@pytest.mark.unit
def test_theme_failure_falls_back_to_generic_label():
    oracle = FakeOracle(layered_graph(), theme=RuntimeError("model unavailable"))
    assembler, _ = _assembler(oracle)
    puzzle = asyncio.run(assembler.generate(SeedPolicy(seed_word="s")))
    assert puzzle.theme == "Word Connections"
    assert puzzle.description == "Find the hidden connections between words"
    assert puzzle.difficulty == "medium"


@pytest.mark.unit
def test_malformed_theme_and_unknown_difficulty():
    oracle = FakeOracle(layered_graph(), theme={"theme": "Steps", "description": "d", "difficulty": "impossible"})
    assembler, _ = _assembler(oracle)
    puzzle = asyncio.run(assembler.generate(SeedPolicy(seed_word="s")))
    assert puzzle.theme == "Steps"
    assert puzzle.difficulty == "hard"

    oracle = FakeOracle(layered_graph(), theme=["not", "an", "object"])
    assembler, _ = _assembler(oracle)
    puzzle = asyncio.run(assembler.generate(SeedPolicy(seed_word="s")))
    assert puzzle.theme == "Word Connections"


@pytest.mark.unit
def test_theme_over_budget_still_yields_puzzle():
    # s + three layers is four oracle calls; the theme call is the fifth
    oracle = FakeOracle(layered_graph())
    assembler, budget = _assembler(oracle, limit=4)
    puzzle = asyncio.run(assembler.generate(SeedPolicy(seed_word="s")))
    assert puzzle.theme == "Word Connections"
    assert oracle.theme_calls == 0
    assert budget.count == 5


@pytest.mark.unit
def test_no_path_raises_with_stats():
    oracle = FakeOracle({"s": ["a", "b", "c"]})
    assembler, _ = _assembler(oracle)
    with pytest.raises(NoPathFound) as exc:
        asyncio.run(assembler.generate(SeedPolicy(seed_word="s")))
    assert exc.value.stats.fetch_failures == 3
    assert "s" in str(exc.value)


@pytest.mark.unit
def test_quota_error_is_reported_unchanged():
    assembler, _ = _assembler(FakeOracle(layered_graph()), limit=1)
    with pytest.raises(QuotaExceeded):
        asyncio.run(assembler.generate(SeedPolicy(seed_word="s")))
    assert assembler.last_stats.quota_exhausted


@pytest.mark.unit
def test_timeout_cancels_search():
    endless = {f"w{i}": [f"w{i + 1}", f"w{i + 2}", f"w{i + 3}"] for i in range(500)}
    oracle = FakeOracle(endless, delay=0.01)
    assembler, _ = _assembler(oracle)
    budgets = SearchBudgets(min_path_length=50, max_depth=100, diversity_floor=1)
    with pytest.raises(SearchCancelled):
        asyncio.run(assembler.generate(SeedPolicy(seed_word="w0"), budgets, timeout_s=0.001))
    assert assembler.last_stats.cancelled


@pytest.mark.unit
def test_concurrent_generate_calls_share_one_run():
    oracle = FakeOracle(layered_graph())
    assembler, _ = _assembler(oracle)

    async def scenario():
        first = asyncio.ensure_future(assembler.generate(SeedPolicy(seed_word="s")))
        await asyncio.sleep(0)
        assert assembler.generating
        second = await assembler.generate(SeedPolicy(seed_word="l1w0"))
        return await first, second

    first, second = asyncio.run(scenario())
    assert first is second
    assert oracle.theme_calls == 1
    assert not assembler.generating


@pytest.mark.unit
def test_pick_seed_order():
    oracle = FakeOracle({})
    assembler, _ = _assembler(oracle)
    assert assembler.pick_seed(SeedPolicy(seed_word="  Ocean ")) == "ocean"
    assert assembler.pick_seed(SeedPolicy(default_word="Environment")) == "environment"

    assembler.provider.cache.store("tree", ["leaf", "root", "bark"])
    assembler.provider.cache.store("sun", ["moon", "star", "day"])
    assert assembler.pick_seed(SeedPolicy(exclude=frozenset({"Sun"}))) == "tree"
    assert assembler.pick_seed(SeedPolicy()) in {"tree", "sun"}
    assert assembler.pick_seed(SeedPolicy(exclude=frozenset({"sun", "tree"}), default_word="x")) == "x"
