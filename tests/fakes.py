import asyncio
from typing import Dict, List

from wordlink.association_cache import AssociationCache
from wordlink.associations import AssociationProvider
from wordlink.call_budget import CallBudget
from wordlink.errors import FetchError
from wordlink.oracle_adapter import AssociationOracleAdapter
from wordlink.text_utils import normalize_word


def layered_graph(layers: int = 5, width: int = 4, seed: str = "s") -> Dict[str, List[str]]:
    """seed -> every word of layer 1 -> every word of layer 2 -> ...

    Edges only point forward, so the first path of a given length is always
    shortcut-free.
    """
    graph = {}
    previous = [seed]
    for layer in range(1, layers + 1):
        current = [f"l{layer}w{i}" for i in range(width)]
        for word in previous:
            graph[word] = list(current)
        previous = current
    return graph


class FirstChoiceRng:
    """randrange/choice always pick index 0, which makes shuffles deterministic."""

    def randrange(self, n):
        return 0

    def choice(self, seq):
        return seq[0]

    def shuffle(self, seq):
        pass


class DictSource:
    """AssociationSource over a plain dict; unknown words fail like a bad oracle reply."""

    def __init__(self, graph: Dict[str, List[str]]):
        self.graph = {normalize_word(k): v for k, v in graph.items()}
        self.calls: List[str] = []

    async def get(self, word: str) -> List[str]:
        self.calls.append(word)
        key = normalize_word(word)
        if key not in self.graph:
            raise FetchError(word, f"no associations for {word}")
        return list(self.graph[key])


class FakeOracle:
    """Oracle capability answering from a dict graph. Unknown words get an empty list.

    `theme` and `hint` override the canned replies; an Exception instance is raised instead.
    """

    def __init__(self, graph: Dict[str, List[str]], theme=None, delay: float = 0.0, hint=None):
        self.graph = {normalize_word(k): v for k, v in graph.items()}
        self.theme = theme if theme is not None else {
            "theme": "Forward Steps",
            "description": "Each word leads to the next layer",
            "difficulty": "expert",
        }
        self.delay = delay
        self.calls: List[str] = []
        self.theme_calls = 0
        self.hint = hint
        self.hint_contexts = []

    async def generate_associations(self, word: str):
        self.calls.append(word)
        await asyncio.sleep(self.delay)
        return [{"word": w, "hint": f"{word} relates to {w}"} for w in self.graph.get(normalize_word(word), [])]

    async def generate_theme_label(self, start_word: str, target_word: str):
        self.theme_calls += 1
        await asyncio.sleep(self.delay)
        if isinstance(self.theme, Exception):
            raise self.theme
        return self.theme

    async def generate_hint(self, context):
        self.hint_contexts.append(context)
        await asyncio.sleep(self.delay)
        if isinstance(self.hint, Exception):
            raise self.hint
        if self.hint is not None:
            return self.hint
        return f"Think about what {context.current_word} brings to mind"


def make_provider(oracle, limit: int = 1000):
    budget = CallBudget(limit, name="test")
    cache = AssociationCache()
    provider = AssociationProvider(cache, AssociationOracleAdapter(oracle, budget))
    return provider, budget


