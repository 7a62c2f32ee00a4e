import asyncio
from unittest.mock import AsyncMock

import pytest

from wordlink.errors import QuotaExceeded
from wordlink.target_validator import TargetValidator
from fakes import DictSource

GRAPH = {
    "start": ["a", "b", "x"],
    "a": ["d", "e", "y"],
    "d": ["target", "x", "y", "f"],
}


def _valid(candidate, path, graph=GRAPH):
    return asyncio.run(TargetValidator(DictSource(graph)).is_valid_target(candidate, path))


@pytest.mark.unit
def test_target_listed_only_by_predecessor_is_valid():
    assert _valid("target", ["start", "a", "d"])
    assert _valid("Target ", ["start", "a", "d"])
    assert _valid("f", ["start", "a", "d"])


@pytest.mark.unit
def test_target_not_connected_to_predecessor_is_invalid():
    assert not _valid("e", ["start", "a", "d"])


@pytest.mark.unit
def test_shortcut_from_earlier_word_is_rejected():
    # start already lists x, so x is reachable in one step
    assert not _valid("x", ["start", "a", "d"])
    assert not _valid("y", ["start", "a", "d"])


@pytest.mark.unit
def test_lookup_failures_reject_the_candidate():
    # predecessor unknown
    assert not _valid("target", ["start", "a", "zzz"])
    # earlier word unknown: inconclusive, so rejected
    assert not _valid("target", ["unknown", "a", "d"])


@pytest.mark.unit
def test_empty_path_is_trivially_valid():
    assert _valid("anything", [])


@pytest.mark.unit
def test_quota_exhaustion_propagates():
    source = AsyncMock()
    source.get.side_effect = QuotaExceeded(5, 6)
    with pytest.raises(QuotaExceeded):
        asyncio.run(TargetValidator(source).is_valid_target("x", ["start", "a"]))

    # Also when the predecessor succeeds and an earlier word hits the quota
    source = AsyncMock()
    source.get.side_effect = [["x", "q", "r"], QuotaExceeded(5, 6)]
    with pytest.raises(QuotaExceeded):
        asyncio.run(TargetValidator(source).is_valid_target("x", ["start", "a"]))
