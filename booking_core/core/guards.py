from contextlib import contextmanager
from threading import Lock
from typing import Iterator, Set


class InFlightRegistry:
    """
    Process-wide set of keys currently being worked on.

    Only guards against re-entry inside one instance; across instances the
    conditional status update on the booking row does the serialising.
    """

    def __init__(self):
        self._keys: Set[str] = set()
        self._lock = Lock()

    def try_claim(self, key: str) -> bool:
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._keys.discard(key)

    def is_claimed(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    @contextmanager
    def claim(self, key: str, error: Exception) -> Iterator[None]:
        if not self.try_claim(key):
            raise error
        try:
            yield
        finally:
            self.release(key)


confirmations_in_flight = InFlightRegistry()
