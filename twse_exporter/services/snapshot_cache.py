from __future__ import annotations

import threading
import time
from typing import Callable

from twse_exporter.errors import FetchError
from twse_exporter.schemas.quote import QuoteSnapshot


class SnapshotCache:
    """Time-bound memo of the last successful upstream fetch.

    The lock is held for the whole get-or-fetch, upstream call included, so
    concurrent scrapes never trigger concurrent upstream requests. A failed
    fetch leaves the stored snapshot untouched and is raised to the caller;
    the old snapshot is not served as a fallback.
    """

    def __init__(
        self,
        *,
        fetcher,
        ttl_sec: float = 5,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.ttl_sec = ttl_sec
        self.clock = clock or time.monotonic
        self._lock = threading.Lock()
        self._snapshot: QuoteSnapshot | None = None
        self._fetched_mono: float | None = None

        self.hits = 0
        self.misses = 0
        self.fetches = 0
        self.fetch_failures = 0

    def _is_fresh(self, ex_ch: tuple[str, ...], now: float) -> bool:
        if self._snapshot is None or self._fetched_mono is None:
            return False
        if self._snapshot.ex_ch_list != ex_ch:
            return False
        return now - self._fetched_mono < self.ttl_sec

    def get(self, ex_ch_list: list[str]) -> QuoteSnapshot:
        ex_ch = tuple(ex_ch_list)
        with self._lock:
            now = self.clock()
            if self._is_fresh(ex_ch, now):
                self.hits += 1
                return self._snapshot

            self.misses += 1
            self.fetches += 1
            try:
                records = self.fetcher.fetch(list(ex_ch))
            except FetchError as exc:
                self.fetch_failures += 1
                print(
                    f"[CACHE][refresh_failed] hits={self.hits} misses={self.misses} fetches={self.fetches} "
                    f"failures={self.fetch_failures} error={exc}",
                    flush=True,
                )
                raise

            snapshot = QuoteSnapshot(
                ex_ch_list=ex_ch,
                records=tuple(records),
                fetched_at=time.time(),
            )
            # swap both halves of the cell together, still under the lock
            self._snapshot, self._fetched_mono = snapshot, self.clock()
            print(
                f"[CACHE][refreshed] records={len(snapshot.records)} fetched_at={snapshot.fetched_at:.3f} "
                f"hits={self.hits} misses={self.misses} fetches={self.fetches} failures={self.fetch_failures}",
                flush=True,
            )
            return snapshot

    def peek(self) -> QuoteSnapshot | None:
        with self._lock:
            return self._snapshot

