"""
TXT Record Store

In-memory mapping from canonical domain name to a single TXT value. This is
the only mutable state shared by the DNS listeners and the control plane.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from ..dns_logging import get_logger

logger = get_logger("record_store")


def normalize_domain(domain: str) -> str:
    """Canonical form of a domain name: ASCII-lowercased, no trailing dots.

    The same rule is applied on every write and every read, so
    ``Example.COM.`` and ``example.com`` address the same record.
    """
    return domain.rstrip(".").lower()


class ReadWriteLock:
    """Many concurrent readers or one exclusive writer.

    Writers are preferred: once a writer is waiting, new readers block until
    it has finished, so a steady stream of DNS queries cannot starve updates.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class RecordStore:
    """Concurrency-safe TXT record store.

    Example use:
        >>> store = RecordStore()
        >>> store.set("_acme-challenge.Example.com.", "token")
        >>> store.get("_acme-challenge.example.com")
        ('token', True)
        >>> store.clear("_ACME-CHALLENGE.EXAMPLE.COM")
        >>> store.get("_acme-challenge.example.com")
        (None, False)
    """

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}
        self._lock = ReadWriteLock()

    def set(self, domain: str, value: str) -> None:
        """Insert or overwrite the TXT value for ``domain``."""
        key = normalize_domain(domain)
        with self._lock.write_locked():
            self._records[key] = value
        logger.info("TXT record set", domain=key, value=value)

    def clear(self, domain: str) -> None:
        """Remove the TXT value for ``domain``; absent names are a no-op."""
        key = normalize_domain(domain)
        with self._lock.write_locked():
            removed = self._records.pop(key, None) is not None
        logger.info("TXT record cleared", domain=key, existed=removed)

    def get(self, domain: str) -> Tuple[Optional[str], bool]:
        """Return ``(value, True)`` when present, ``(None, False)`` otherwise."""
        key = normalize_domain(domain)
        with self._lock.read_locked():
            found = key in self._records
            value = self._records.get(key)
        return value, found

    def names(self) -> List[str]:
        """Canonical names currently provisioned."""
        with self._lock.read_locked():
            return sorted(self._records)

    def snapshot(self) -> Dict[str, str]:
        """Point-in-time copy of every record."""
        with self._lock.read_locked():
            return dict(self._records)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._records)

    def __contains__(self, domain: str) -> bool:
        return self.get(domain)[1]
