"""On-device learning of merchant -> category associations from user corrections."""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .models import LearnedMerchant

logger = logging.getLogger(__name__)

LEARNED_MERCHANTS_KEY = "receipt_scanner.learned_merchants"
DEFAULT_CAPACITY = 500


class KeyValueStore(ABC):
    """Minimal string key-value persistence."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Process-local store, used in tests and when no store path is configured."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """All keys kept in one JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected content in {self.path}")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class FrequencyCache:
    """Bounded map of learned merchants, least used evicted first.

    Entries are kept in recency order (oldest first) so that among merchants
    with the same usage count the least recently used one goes.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY,
                 merchants: Optional[List[LearnedMerchant]] = None):
        self.capacity = capacity
        self._entries: "OrderedDict[str, LearnedMerchant]" = OrderedDict()
        for merchant in self._recency_order(merchants or []):
            self._entries[merchant.name] = merchant

    @staticmethod
    def _recency_order(merchants: List[LearnedMerchant]) -> List[LearnedMerchant]:
        # Persisted order lists more recent entries first within a usage count
        oldest = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(reversed(merchants), key=lambda m: _aware(m.last_used) or oldest)

    def touch(self, name: str, category: str, now: datetime) -> LearnedMerchant:
        """Insert or update ``name`` and enforce the capacity."""
        entry = self._entries.get(name)
        if entry is None:
            entry = LearnedMerchant(name=name, category=category, times_used=1, last_used=now)
            self._entries[name] = entry
        else:
            entry.category = category
            entry.times_used += 1
            entry.last_used = now
            self._entries.move_to_end(name)

        while len(self._entries) > self.capacity:
            victim = min(self._entries.values(), key=lambda m: m.times_used)
            logger.debug(f"Evicting learned merchant '{victim.name}'")
            del self._entries[victim.name]
        return entry

    def entries(self) -> List[LearnedMerchant]:
        """Most used first; ties broken by recency."""
        recent_first = list(reversed(self._entries.values()))
        return sorted(recent_first, key=lambda m: m.times_used, reverse=True)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LearningStore:
    """Persists user-confirmed merchant categories.

    Storage problems never reach the caller: reads fall back to an empty
    collection and failed writes are logged and dropped.
    """

    def __init__(self,
                 kv_store: Optional[KeyValueStore] = None,
                 capacity: int = DEFAULT_CAPACITY,
                 clock: Optional[Callable[[], datetime]] = None):
        self.kv_store = kv_store or MemoryStore()
        self.capacity = capacity
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def merchants(self) -> List[LearnedMerchant]:
        """Return the persisted merchants, most used first."""
        try:
            raw = self.kv_store.get(LEARNED_MERCHANTS_KEY)
            if not raw:
                return []
            return [LearnedMerchant.from_dict(item) for item in json.loads(raw)]
        except Exception as e:
            logger.warning(f"Failed to read learned merchants: {e}")
            return []

    def find(self, name: str) -> Optional[LearnedMerchant]:
        normalized = (name or '').strip().lower()
        return next((m for m in self.merchants() if m.name == normalized), None)

    def record(self, name: str, category: str) -> Optional[LearnedMerchant]:
        """
        Record that ``name`` belongs to ``category``.

        Args:
            name: Merchant name as entered or extracted
            category: Category chosen by the user

        Returns:
            The updated entry, or None for an empty name
        """
        normalized = (name or '').strip().lower()
        if not normalized:
            return None

        with self._lock:
            cache = FrequencyCache(self.capacity, self.merchants())
            entry = cache.touch(normalized, category, self.clock())
            try:
                payload = json.dumps([m.to_dict() for m in cache.entries()], ensure_ascii=False)
                self.kv_store.set(LEARNED_MERCHANTS_KEY, payload)
            except Exception as e:
                logger.warning(f"Failed to save learned merchant '{normalized}': {e}")
                return entry

        logger.info(f"Learned merchant '{normalized}' -> '{category}' (used {entry.times_used}x)")
        return entry

    def clear(self) -> None:
        """Forget every learned merchant."""
        with self._lock:
            try:
                self.kv_store.remove(LEARNED_MERCHANTS_KEY)
            except Exception as e:
                logger.warning(f"Failed to clear learned merchants: {e}")
                return
        logger.info("Cleared learned merchants")
