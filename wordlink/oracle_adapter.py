import logging
from typing import Any, Dict, List, Protocol

from .association_cache import Association, AssociationRecord
from .call_budget import CallBudget
from .errors import FetchError, InsufficientAssociations, OracleRefused, WordLinkError
from .llm_oracle import ERROR_TOKEN
from .text_utils import normalize_word

logger = logging.getLogger(__name__)

MIN_ASSOCIATIONS = 3


class AssociationOracle(Protocol):
    async def generate_associations(self, word: str) -> Any: ...

    async def generate_theme_label(self, start_word: str, target_word: str) -> Dict: ...

    async def generate_hint(self, context) -> str: ...


def parse_associations(word: str, payload: Any, minimum: int = MIN_ASSOCIATIONS) -> AssociationRecord:
    """Validate an oracle payload into an AssociationRecord.

    Raises FetchError for a non-list payload, OracleRefused when the refusal
    token is present and InsufficientAssociations when fewer than `minimum`
    usable entries remain.
    """
    if not isinstance(payload, list):
        raise FetchError(word, f"Invalid association array structure for \"{word}\": not an array")

    for item in payload:
        if isinstance(item, dict) and isinstance(item.get("word"), str) and item["word"].strip() == ERROR_TOKEN:
            raise OracleRefused(word)

    source = normalize_word(word)
    seen = set()
    details: List[Association] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        candidate = item.get("word")
        if not isinstance(candidate, str) or not candidate.strip():
            continue
        candidate = candidate.strip()
        key = normalize_word(candidate)
        if key == source or key in seen:
            continue
        seen.add(key)
        hint = item.get("hint", item.get("rationale"))
        details.append(Association(candidate, hint.strip() if isinstance(hint, str) and hint.strip() else None))

    if len(details) < minimum:
        raise InsufficientAssociations(word, len(details), minimum)
    return AssociationRecord([d.word for d in details], details)


class AssociationOracleAdapter:
    """Metered, validated access to the association oracle."""

    def __init__(self, oracle: AssociationOracle, budget: CallBudget, minimum: int = MIN_ASSOCIATIONS):
        self.oracle = oracle
        self.budget = budget
        self.minimum = minimum

    def with_budget(self, budget: CallBudget) -> "AssociationOracleAdapter":
        return AssociationOracleAdapter(self.oracle, budget, self.minimum)

    async def fetch(self, word: str) -> AssociationRecord:
        self.budget.consume()
        try:
            payload = await self.oracle.generate_associations(word)
        except WordLinkError:
            raise
        except Exception as e:
            raise FetchError(word, f"Error getting AI associations for \"{word}\": {e}") from e
        record = parse_associations(word, payload, self.minimum)
        logger.info(f"Fetched {len(record.words)} associations for '{word}': {', '.join(record.words)}")
        return record

    async def theme_label(self, start_word: str, target_word: str) -> Dict:
        self.budget.consume()
        try:
            return await self.oracle.generate_theme_label(start_word, target_word)
        except WordLinkError:
            raise
        except Exception as e:
            raise FetchError(f"{start_word}->{target_word}", f"Error generating theme: {e}") from e

    async def hint(self, context) -> str:
        """One gameplay hint for `context` (a HintContext); empty replies are a FetchError."""
        label = f"hint:{context.current_word}"
        self.budget.consume()
        try:
            hint = await self.oracle.generate_hint(context)
        except WordLinkError:
            raise
        except Exception as e:
            raise FetchError(label, f"Error generating hint: {e}") from e
        if not isinstance(hint, str) or not hint.strip():
            raise FetchError(label, f"Oracle returned an empty hint for \"{context.current_word}\"")
        return hint.strip()
