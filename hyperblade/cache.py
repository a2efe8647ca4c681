from typing import Dict, List, Optional


class CompileCache:
    """
    LRU cache of compiled templates, keyed by their source text.
    Identical sources always compile to identical output, so a hit skips the whole compile.
    """

    def __init__(self, max_size: int = 100) -> None:
        self.max_size = max_size
        self._cache: Dict[str, str] = {}
        self._access_order: List[str] = []

    def get(self, source: str) -> Optional[str]:
        if source in self._cache:
            self._access_order.remove(source)
            self._access_order.append(source)
            return self._cache[source]
        return None

    def set(self, source: str, compiled: str) -> None:
        if self.max_size <= 0:
            return
        if source in self._cache:
            self._access_order.remove(source)
        elif len(self._cache) >= self.max_size:
            # Evict least recently used
            oldest = self._access_order.pop(0)
            del self._cache[oldest]

        self._cache[source] = compiled
        self._access_order.append(source)

    def clear(self) -> None:
        self._cache.clear()
        self._access_order.clear()

    def __contains__(self, source: str) -> bool:
        return source in self._cache

    def __len__(self) -> int:
        return len(self._cache)
