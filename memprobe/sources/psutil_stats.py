"""
memprobe.sources.psutil_stats
AUTHOR: carter-vin

Portable fallback source using psutil.virtual_memory()

Values are already bytes, no page size needed.
`cached` only exists on some platforms (Linux, BSD); elsewhere it is absent.
"""

from __future__ import annotations

import psutil

from memprobe.model import Snapshot, build_snapshot
from memprobe.sources.base import MemoryCounterSource, RawCounterSet, ReadFailure

PSUTIL_FIELDS = ("used", "cached", "free")


def reconcile_psutil(counters: RawCounterSet) -> Snapshot:
    """
    used / cached / free straight through; total is their sum
    """
    pairs = []
    for name in PSUTIL_FIELDS:
        value = counters.get(name)
        pairs.append((name, None if value is None or value < 0 else value))
    return build_snapshot(pairs)


class PsutilSource(MemoryCounterSource):
    name = "psutil"
    needs_page_size = False

    def read_counters(self) -> RawCounterSet:
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as e:
            raise ReadFailure(f"psutil.virtual_memory failed: {e}") from e

        counters: RawCounterSet = {}
        for name in PSUTIL_FIELDS:
            value = getattr(mem, name, None)
            counters[name] = None if value is None else int(value)
        return counters

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        return reconcile_psutil(counters)
