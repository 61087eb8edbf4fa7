from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any

from .config import DEFAULT_CACHE_SIZE
from .models import Node


logger = logging.getLogger(__name__)


class ExpressionCache:
    """Bounded map from exact source text to its parsed AST.

    Least recently used entries are evicted first. Safe to share across threads.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_SIZE) -> None:
        if capacity <= 0:
            raise ValueError(f"cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[str, Node] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, text: str) -> Node | None:
        with self._lock:
            node = self._entries.get(text)
            if node is None:
                self.misses += 1
                return None
            self._entries.move_to_end(text)
            self.hits += 1
            return node

    def put(self, text: str, node: Node) -> None:
        with self._lock:
            self._entries[text] = node
            self._entries.move_to_end(text)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached expression %r", evicted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / lookups if lookups else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, text: object) -> bool:
        with self._lock:
            return text in self._entries
