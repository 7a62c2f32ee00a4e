"""
Error types for puzzle generation and association lookups.

Per-word errors (AssociationError and subclasses) are recoverable: the search
abandons that one branch. QuotaExceeded is fatal to the whole search and is
always re-raised unchanged.
"""

from typing import Optional


class WordLinkError(Exception):
    """Base class for every error raised by the engine."""


class QuotaExceeded(WordLinkError):
    """The call budget is spent; no further oracle calls may be made."""

    def __init__(self, limit: int, count: int, name: str = "api"):
        self.limit = limit
        self.count = count
        self.name = name
        super().__init__(f"API call limit of {limit} reached for '{name}' budget ({count} calls attempted)")


class AssociationError(WordLinkError):
    """Associations for a single word could not be obtained."""

    def __init__(self, word: str, message: str):
        self.word = word
        super().__init__(message)


class InsufficientAssociations(AssociationError):
    def __init__(self, word: str, count: int, required: int = 3):
        self.count = count
        self.required = required
        super().__init__(
            word,
            f"Too few valid associations for \"{word}\" ({count}). Need at least {required} associations.",
        )


class OracleRefused(AssociationError):
    def __init__(self, word: str):
        super().__init__(word, f"\"__ERROR__\" token found in associations for \"{word}\"; the oracle could not comply.")


class FetchError(AssociationError):
    """Transport, HTTP or payload-format failure while asking the oracle."""


class ValidationInconclusive(WordLinkError):
    """A non-predecessor lookup failed, so a shortcut cannot be ruled out."""

    def __init__(self, candidate: str, word: str, cause: Optional[BaseException] = None):
        self.candidate = candidate
        self.word = word
        self.cause = cause
        super().__init__(f"Cannot verify that \"{word}\" does not lead straight to \"{candidate}\": {cause}")


class GenerationError(WordLinkError):
    """A puzzle could not be generated."""


class NoPathFound(GenerationError):
    def __init__(self, seed: str, stats=None):
        self.seed = seed
        self.stats = stats
        detail = ""
        if stats is not None:
            detail = (
                f" after exploring {stats.expansions} paths,"
                f" abandoning {stats.abandoned_for_diversity} for diversity reasons"
            )
        super().__init__(f"Failed to find a valid path from \"{seed}\"{detail}.")


class SearchCancelled(GenerationError):
    def __init__(self, seed: str, stats=None):
        self.seed = seed
        self.stats = stats
        super().__init__(f"Path search from \"{seed}\" was cancelled before a target was found.")
