"""DNS response cache keyed by query identity with time-based eviction."""
import struct
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from dnslib import DNSRecord, QTYPE
from dnslib.buffer import BufferError as DNSBufferError
from dnslib.dns import DNSError
from dnslib.label import DNSLabelError

from .config import logger

# DNSSEC OK flag, lives in the low 16 bits of the OPT record's TTL field
EDNS0_DO = 0x8000

# Placeholder written over the transaction ID of every copy handed out
BLANK_ID = b"\x00\x00"

PACK_ERRORS = (DNSError, DNSLabelError, DNSBufferError, struct.error, ValueError, TypeError)


def derive_key(query: DNSRecord) -> str:
    """
    Build the cache key for a query.

    The key is ``name,qtype,qclass`` followed by ``D`` when the first OPT
    record asks for DNSSEC records, ``P`` (plain) otherwise. The query must
    carry at least one question.
    """
    q = query.questions[0]
    key = f"{str(q.qname).lower()},{q.qtype},{q.qclass}"
    for rr in query.ar:
        if rr.rtype == QTYPE.OPT:
            return key + ("D" if rr.ttl & EDNS0_DO else "P")
    return key + "P"


@dataclass(frozen=True)
class CacheEntry:
    """A packed response and the time it was stored."""
    timestamp: float
    data: bytes


class CacheStore:
    """Lock-protected mapping from cache key to entry."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def find(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def insert(self, key: str, entry: CacheEntry):
        with self._lock:
            self._entries[key] = entry

    def remove(self, key: str, expected: Optional[CacheEntry] = None) -> bool:
        """
        Delete the entry stored under key.

        When ``expected`` is given the entry is only deleted if it is still
        that exact object, so an entry re-inserted after the caller looked
        it up survives.

        Returns:
            True if an entry was deleted
        """
        with self._lock:
            current = self._entries.get(key)
            if current is None:
                return False
            if expected is not None and current is not expected:
                return False
            del self._entries[key]
            return True

    def keys(self) -> List[str]:
        """Snapshot of the stored keys."""
        with self._lock:
            return list(self._entries)


class DNSCache:
    """In-memory cache of packed DNS responses with a global expiry window."""

    def __init__(self, verbose: bool = False, enabled: bool = True,
                 clock: Callable[[], float] = time.monotonic):
        self.verbose = verbose
        self.enabled = enabled
        self._clock = clock
        self._store = CacheStore()

    def __len__(self):
        return len(self._store)

    def to_key(self, message: DNSRecord) -> str:
        return derive_key(message)

    def find(self, query: DNSRecord) -> Optional[bytearray]:
        """
        Look up a cached response for the query.

        Returns a private copy of the packed response with the transaction ID
        zeroed; the caller stamps its own ID before sending. Returns None on
        a miss.
        """
        if not self.enabled:
            return None
        key = derive_key(query)
        entry = self._store.find(key)
        if entry is None:
            if self.verbose:
                logger.info(f"Cache miss for {key}")
            return None
        copy = bytearray(BLANK_ID)
        copy += entry.data[2:]
        return copy

    def insert(self, query: DNSRecord, response: DNSRecord) -> bool:
        """
        Cache the response under the query's key, replacing any prior entry.

        Returns:
            True if the response was stored, False if it could not be packed
            or caching is disabled
        """
        if not self.enabled:
            return False
        key = derive_key(query)
        try:
            data = bytes(response.pack())
        except PACK_ERRORS as e:
            logger.warning(f"Not caching {key}: response failed to pack: {e}")
            return False
        if self.verbose:
            logger.info(f"Inserting {key}")
        self._store.insert(key, CacheEntry(timestamp=self._clock(), data=data))
        return True

    def remove(self, query: DNSRecord, all_variants: bool = False) -> bool:
        """
        Invalidate the entry for the query, if any.

        With all_variants both the plain and the DNSSEC entry for the
        question are dropped, whatever the query itself asked for.
        """
        key = derive_key(query)
        if not all_variants:
            return self._store.remove(key)
        removed = [self._store.remove(key[:-1] + suffix) for suffix in "PD"]
        return any(removed)

    def evict(self, ttl: float) -> int:
        """
        Remove every entry older than ttl seconds.

        Keys are snapshotted first and each one is looked up again before it
        is removed; a key that is gone by then was already evicted or removed.

        Returns:
            Number of entries evicted
        """
        evicted = 0
        for key in self._store.keys():
            entry = self._store.find(key)
            if entry is None:
                continue
            age = self._clock() - entry.timestamp
            if age > ttl and self._store.remove(key, expected=entry):
                evicted += 1
                if self.verbose:
                    logger.info(f"Evicting {key} after {age:.1f}s")
        if evicted:
            logger.debug(f"Evicted {evicted} expired cache entries")
        return evicted
