import logging
from typing import Sequence

from .associations import AssociationSource
from .errors import QuotaExceeded, ValidationInconclusive, WordLinkError
from .text_utils import normalize_word

logger = logging.getLogger(__name__)


class TargetValidator:
    """Checks that a candidate target is reachable from the path and has no shortcut.

    A candidate is valid when the last path word lists it as an association
    and no earlier path word does. Lookups go through the source (cache first);
    QuotaExceeded always propagates.
    """

    def __init__(self, source: AssociationSource):
        self.source = source

    async def _lists(self, word: str, candidate: str) -> bool:
        associations = await self.source.get(word)
        return any(normalize_word(a) == candidate for a in associations)

    async def is_valid_target(self, candidate: str, path_so_far: Sequence[str]) -> bool:
        if not path_so_far:
            return True
        target = normalize_word(candidate)
        predecessor = path_so_far[-1]

        try:
            connected = await self._lists(predecessor, target)
        except QuotaExceeded:
            logger.warning(f"Quota exhausted while validating '{candidate}'; aborting target validation")
            raise
        except WordLinkError as e:
            logger.error(f"Error getting associations for \"{predecessor}\": {e}")
            return False
        if not connected:
            logger.info(f"INVALID TARGET: \"{candidate}\" is not directly connected to \"{predecessor}\"")
            return False

        for word in path_so_far[:-1]:
            try:
                shortcut = await self._lists(word, target)
            except QuotaExceeded:
                logger.warning(f"Quota exhausted while validating '{candidate}'; aborting target validation")
                raise
            except WordLinkError as e:
                inconclusive = ValidationInconclusive(candidate, word, e)
                logger.warning(f"INVALID TARGET: {inconclusive}")
                return False
            if shortcut:
                logger.info(f"INVALID TARGET: \"{candidate}\" is a shortcut from earlier word \"{word}\"")
                return False

        logger.info(f"VALID TARGET: \"{candidate}\" is connected to \"{predecessor}\" with no shortcut")
        return True
