from typing import List, Protocol

from .association_cache import AssociationCache, AssociationRecord
from .call_budget import CallBudget
from .oracle_adapter import AssociationOracleAdapter


class AssociationSource(Protocol):
    """Neighbours of a word in the implicit association graph."""

    async def get(self, word: str) -> List[str]: ...


class AssociationProvider:
    """Cache-first association lookups, falling back to the metered oracle on a miss."""

    def __init__(self, cache: AssociationCache, adapter: AssociationOracleAdapter):
        self.cache = cache
        self.adapter = adapter

    def with_budget(self, budget: CallBudget) -> "AssociationProvider":
        return AssociationProvider(self.cache, self.adapter.with_budget(budget))

    async def get_record(self, word: str) -> AssociationRecord:
        return await self.cache.get_or_fetch(word, self.adapter.fetch)

    async def get(self, word: str) -> List[str]:
        record = await self.get_record(word)
        return record.words
