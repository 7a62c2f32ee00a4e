import asyncio
import random

import pytest

from wordlink.call_budget import CallBudget
from wordlink.path_search import (
    FrontierEntry,
    PathSearchEngine,
    SearchBudgets,
    prioritize_frontier,
    shuffled,
)
from wordlink.text_utils import normalize_word
from fakes import DictSource, FakeOracle, FirstChoiceRng, layered_graph, make_provider

EXAMPLE = {
    "start": ["a", "b", "c"],
    "a": ["d", "e"],
    "d": ["target", "f"],
}
EXAMPLE_BUDGETS = SearchBudgets(min_path_length=4, diversity_floor=0)


class EndlessSource:
    """Every word has three fresh associations, so no path ever closes."""

    def __init__(self):
        self.calls = 0

    async def get(self, word):
        self.calls += 1
        await asyncio.sleep(0)
        return [f"{word}.{i}" for i in range(3)]


def _search(source, seed, budgets, rng=None, cancel_event=None):
    engine = PathSearchEngine(source, rng=rng or random.Random(0))
    result = asyncio.run(engine.find_path(seed, budgets, cancel_event))
    return result, engine.last_stats


@pytest.mark.unit
def test_example_graph_with_fixed_rng():
    result, stats = _search(DictSource(EXAMPLE), "start", EXAMPLE_BUDGETS, rng=FirstChoiceRng())
    assert result.path == ["start", "a", "d", "target"]
    assert result.target == "target"
    assert result.steps == 3
    assert stats.found


@pytest.mark.unit
@pytest.mark.parametrize("seed", [0, 1, 2, 3, 42])
def test_example_graph_with_seeded_rng(seed):
    result, stats = _search(DictSource(EXAMPLE), "start", EXAMPLE_BUDGETS, rng=random.Random(seed))
    assert result.path[:3] == ["start", "a", "d"]
    assert result.target in {"target", "f"}
    # b, c and e have no associations, so their expansions are abandoned
    assert stats.fetch_failures <= 3


@pytest.mark.unit
@pytest.mark.parametrize("seed", range(8))
def test_found_paths_are_unique_long_enough_and_shortcut_free(seed):
    graph = layered_graph()
    source = DictSource(graph)
    result, _ = _search(source, "s", SearchBudgets(), rng=random.Random(seed))

    path = result.path
    assert len(path) >= 5
    assert len({normalize_word(w) for w in path}) == len(path)
    for prev, nxt in zip(path, path[1:]):
        assert nxt in graph[prev]
    for earlier in path[:-2]:
        assert path[-1] not in graph[earlier]


@pytest.mark.unit
def test_max_expansions_bounds_the_work():
    source = EndlessSource()
    budgets = SearchBudgets(min_path_length=50, max_depth=100, max_expansions=25)
    result, stats = _search(source, "root", budgets)
    assert result is None
    assert stats.expansions == 25
    assert source.calls == 25
    assert not stats.found


@pytest.mark.unit
def test_max_depth_stops_expanding():
    source = EndlessSource()
    budgets = SearchBudgets(min_path_length=10, max_depth=3, max_expansions=250)
    result, stats = _search(source, "root", budgets)
    assert result is None
    # root plus its 3 children are expanded; the 9 grandchildren sit at max depth
    assert source.calls == 4
    assert stats.expansions == 13


@pytest.mark.unit
def test_quota_exhaustion_aborts_after_one_attempt():
    oracle = FakeOracle(layered_graph())
    provider, budget = make_provider(oracle, limit=0)
    result, stats = _search(provider, "s", SearchBudgets())
    assert result is None
    assert stats.quota_exhausted
    assert stats.quota_error is not None
    assert budget.count == 1
    assert oracle.calls == []


@pytest.mark.unit
def test_quota_exhaustion_mid_search_keeps_cached_results():
    oracle = FakeOracle(layered_graph())
    provider, budget = make_provider(oracle, limit=2)
    result, stats = _search(provider, "s", SearchBudgets())
    assert result is None
    assert stats.quota_exhausted
    assert len(oracle.calls) == 2
    assert len(provider.cache) == 2


@pytest.mark.unit
def test_diversity_floor_abandons_thin_branches():
    graph = {
        "start": ["a", "b", "c"],
        "a": ["start", "b", "c", "d"],
    }
    budgets = SearchBudgets(min_path_length=3, diversity_floor=3)
    result, stats = _search(DictSource(graph), "start", budgets)
    assert result is None
    assert stats.abandoned_for_diversity == 1
    assert stats.fetch_failures == 2


@pytest.mark.unit
def test_cancelled_search_returns_none():
    event = asyncio.Event()
    event.set()
    source = EndlessSource()
    result, stats = _search(source, "root", SearchBudgets(), cancel_event=event)
    assert result is None
    assert stats.cancelled
    assert stats.expansions == 0
    assert source.calls == 0


@pytest.mark.unit
def test_budgets_are_validated():
    with pytest.raises(ValueError):
        SearchBudgets(min_path_length=1)
    with pytest.raises(ValueError):
        SearchBudgets(max_expansions=0)
    with pytest.raises(ValueError):
        SearchBudgets(diversity_floor=-1)


@pytest.mark.unit
def test_prioritize_frontier_puts_best_entry_last():
    def entry(length, depth):
        return FrontierEntry(tuple(f"w{i}" for i in range(length)), depth)

    shallow = entry(2, 2)
    deep = entry(3, 3)
    assert prioritize_frontier([deep, shallow], 5)[-1] is deep

    # Same depth, both below the minimum: the longer path is preferred
    short, longer = entry(2, 4), entry(3, 4)
    assert prioritize_frontier([longer, short], 5)[-1] is longer

    # Same depth, both at or past the minimum: the shorter path is preferred
    six, seven = entry(6, 4), entry(7, 4)
    assert prioritize_frontier([six, seven], 5)[-1] is six

    # Mixed: the one closer to the minimum wins
    three = entry(3, 4)
    assert prioritize_frontier([six, three], 5)[-1] is six

    # Stable for ties and pure
    tie_a, tie_b = entry(2, 2), entry(2, 2)
    frontier = [tie_a, tie_b]
    ordered = prioritize_frontier(frontier, 5)
    assert ordered[0] is tie_a and ordered[1] is tie_b
    assert frontier == [tie_a, tie_b]


@pytest.mark.unit
def test_shuffled_is_pure_and_reproducible():
    items = ["a", "b", "c", "d", "e"]
    first = shuffled(items, random.Random(7))
    second = shuffled(items, random.Random(7))
    assert first == second
    assert sorted(first) == items
    assert items == ["a", "b", "c", "d", "e"]
    assert shuffled(["a", "b", "c"], FirstChoiceRng()) == ["b", "c", "a"]
