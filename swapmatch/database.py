import threading
from collections.abc import Callable, Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database.

    Every read and write takes the same re-entrant lock, so a block of
    writes made inside `transaction()` is never observed half-applied.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}
        self._lock = threading.RLock()

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._store[key] = value

    def put_many(self, items: Mapping[K, V]) -> None:
        with self._lock:
            self._store.update(items)

    def get(self, key: K) -> V | None:
        with self._lock:
            return self._store.get(key)

    def delete(self, key: K) -> None:
        with self._lock:
            self._store.pop(key, None)

    def all(self) -> list[V]:
        with self._lock:
            return list(self._store.values())

    def find(self, predicate: Callable[[V], bool]) -> list[V]:
        with self._lock:
            return [v for v in self._store.values() if predicate(v)]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __iter__(self) -> Iterator[V]:
        return iter(self.all())

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    @contextmanager
    def transaction(self) -> Iterator["InMemoryKeyValueDatabase[K, V]"]:
        """
        Hold the lock for a read-check-write sequence. Callers compute every
        new value first and write them with a single `put_many`.
        """
        with self._lock:
            yield self