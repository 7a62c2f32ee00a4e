"""
Process-wide memo of oracle results.

Keys are normalized words. Each entry holds the plain word list and, when the
oracle supplied them, the detailed associations (word + rationale) in the same
order. Concurrent first fetches of one word share a single oracle call.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from .errors import FetchError
from .text_utils import normalize_word

logger = logging.getLogger(__name__)

DETAILED_SUFFIX = "_detailed"


@dataclass(frozen=True)
class Association:
    word: str
    rationale: Optional[str] = None

    def to_dict(self) -> Dict:
        return {"word": self.word, "hint": self.rationale}


@dataclass(frozen=True)
class AssociationRecord:
    words: List[str]
    details: Optional[List[Association]] = field(default=None, compare=False)


class AssociationCache:
    def __init__(self):
        self._entries: Dict[str, List[str]] = {}
        self._detailed: Dict[str, List[Association]] = {}
        self._pending: Dict[str, asyncio.Future] = {}
        self.epoch = 0
        self._stats = {
            "hits": 0,
            "misses": 0,
            "shared_waits": 0,
            "last_saved": None,
            "last_loaded": None,
            "last_cleared": None,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, word) -> bool:
        return normalize_word(word) in self._entries

    def words(self) -> List[str]:
        return list(self._entries)

    def lookup(self, word: str) -> Optional[AssociationRecord]:
        key = normalize_word(word)
        words = self._entries.get(key)
        if words is None:
            return None
        return AssociationRecord(list(words), self._copy_details(key))

    def lookup_detailed(self, word: str) -> Optional[List[Association]]:
        return self._copy_details(normalize_word(word))

    def _copy_details(self, key: str) -> Optional[List[Association]]:
        details = self._detailed.get(key)
        return list(details) if details is not None else None

    def store(self, word: str, words: List[str], detailed: Optional[List[Association]] = None) -> None:
        """Overwrite the entry for word. Plain and detailed lists are written together."""
        key = normalize_word(word)
        if not key:
            raise ValueError("cannot cache associations for an empty word")
        plain = list(words)
        if detailed is not None:
            detailed = list(detailed)
            if [d.word for d in detailed] != plain:
                raise ValueError(f"detailed associations for '{key}' do not match its word list")
        self._entries[key] = plain
        if detailed is None:
            self._detailed.pop(key, None)
        else:
            self._detailed[key] = detailed

    def store_record(self, word: str, record: AssociationRecord) -> None:
        self.store(word, record.words, record.details)

    async def get_or_fetch(self, word: str,
                           fetch: Callable[[str], Awaitable[AssociationRecord]]) -> AssociationRecord:
        """Cache-first lookup; on a miss, fetch once and share the result with concurrent callers."""
        key = normalize_word(word)
        cached = self.lookup(key)
        if cached is not None:
            self._stats["hits"] += 1
            logger.debug(f"Cache HIT for '{key}' ({self._stats['hits']} hits, {self._stats['misses']} misses)")
            return cached

        pending = self._pending.get(key)
        if pending is not None:
            self._stats["shared_waits"] += 1
            logger.debug(f"Joining in-flight fetch for '{key}'")
            record = await asyncio.shield(pending)
            return AssociationRecord(list(record.words), list(record.details) if record.details is not None else None)

        self._stats["misses"] += 1
        logger.info(f"Cache MISS for '{key}' ({self._stats['hits']} hits, {self._stats['misses']} misses)")
        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        epoch = self.epoch
        try:
            record = await fetch(key)
        except asyncio.CancelledError:
            future.set_exception(FetchError(key, f"fetch for '{key}' was cancelled"))
            future.exception()
            raise
        except BaseException as e:
            future.set_exception(e)
            # Mark retrieved so an unobserved failure is not reported by asyncio
            future.exception()
            raise
        else:
            if epoch == self.epoch:
                self.store_record(key, record)
            future.set_result(record)
            return record
        finally:
            if self._pending.get(key) is future:
                del self._pending[key]

    def clear(self) -> None:
        """Drop every entry and start a new epoch."""
        self._entries.clear()
        self._detailed.clear()
        self._pending.clear()
        self.epoch += 1
        self._stats["last_cleared"] = datetime.now(timezone.utc)
        logger.info(f"Association cache cleared (epoch {self.epoch})")

    def snapshot(self) -> Dict[str, list]:
        """Flat JSON-ready mapping: word -> [words], word_detailed -> [{word, hint}]."""
        data: Dict[str, list] = {}
        for key, words in self._entries.items():
            data[key] = list(words)
            details = self._detailed.get(key)
            if details is not None:
                data[f"{key}{DETAILED_SUFFIX}"] = [d.to_dict() for d in details]
        return data

    def load_snapshot(self, data: Dict) -> int:
        """Merge a snapshot into the cache. Returns the number of words loaded."""
        if not isinstance(data, dict):
            logger.error("Invalid cache snapshot format; ignoring")
            return 0
        loaded = 0
        for raw_key, value in data.items():
            if not isinstance(raw_key, str) or raw_key.endswith(DETAILED_SUFFIX):
                continue
            if not isinstance(value, list) or not all(isinstance(w, str) for w in value):
                logger.warning(f"Skipping malformed cache entry for '{raw_key}'")
                continue
            detailed = self._parse_detailed(raw_key, value, data.get(f"{raw_key}{DETAILED_SUFFIX}"))
            try:
                self.store(raw_key, value, detailed)
            except ValueError as e:
                logger.warning(f"Skipping cache entry for '{raw_key}': {e}")
                continue
            loaded += 1
        self._stats["last_loaded"] = datetime.now(timezone.utc)
        logger.info(f"Association cache loaded ({loaded} entries)")
        return loaded

    @staticmethod
    def _parse_detailed(key: str, words: List[str], raw) -> Optional[List[Association]]:
        if not isinstance(raw, list):
            return None
        details = []
        for item in raw:
            if not isinstance(item, dict) or not isinstance(item.get("word"), str):
                logger.warning(f"Dropping detailed associations for '{key}': malformed item")
                return None
            hint = item.get("hint")
            details.append(Association(item["word"], hint if isinstance(hint, str) else None))
        if [d.word for d in details] != list(words):
            logger.warning(f"Dropping detailed associations for '{key}': word list mismatch")
            return None
        return details

    def mark_saved(self) -> None:
        self._stats["last_saved"] = datetime.now(timezone.utc)

    def stats(self) -> Dict:
        hits, misses = self._stats["hits"], self._stats["misses"]
        total = hits + misses
        return {
            "size": len(self._entries),
            "detailed_size": len(self._detailed),
            "hits": hits,
            "misses": misses,
            "shared_waits": self._stats["shared_waits"],
            "hit_rate": round(hits / total * 100, 2) if total else 0.0,
            "in_flight": len(self._pending),
            "epoch": self.epoch,
            "last_saved": self._stats["last_saved"],
            "last_loaded": self._stats["last_loaded"],
            "last_cleared": self._stats["last_cleared"],
        }
