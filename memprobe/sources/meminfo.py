"""
memprobe.sources.meminfo
AUTHOR: carter-vin

Linux source via /proc/meminfo
- kB values, scaled to bytes
- only MemTotal / MemFree / Buffers / Cached are used
- stdlib only
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from memprobe.model import Snapshot, build_snapshot
from memprobe.sources.base import (
    DataInconsistency,
    MemoryCounterSource,
    RawCounterSet,
    ReadFailure,
)

PROC_MEMINFO = Path("/proc/meminfo")

# line prefix (lowercased) -> counter name
FIELD_PREFIXES = (
    ("memtotal:", "total"),
    ("memfree:", "free"),
    ("buffers:", "buffered"),
    ("cached:", "cached"),
)


def parse_meminfo(contents: str) -> RawCounterSet:
    """
    Parse /proc/meminfo text into byte counts for the four fields of interest

    Unmatched lines are ignored; a field never seen stays None
    """
    values: RawCounterSet = {name: None for _, name in FIELD_PREFIXES}
    for line in contents.splitlines():
        lowered = line.lower()
        for prefix, name in FIELD_PREFIXES:
            if lowered.startswith(prefix):
                break
        else:
            continue

        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            value_kb = int(parts[1])
        except ValueError:
            continue
        values[name] = value_kb * 1024
    return values


def reconcile_meminfo(counters: RawCounterSet) -> Snapshot:
    """
    used = total - (free + buffered + cached), only when that is >= 0

    Percentages are against MemTotal
    """
    total = counters.get("total")
    if total is None:
        raise DataInconsistency("MemTotal missing in /proc/meminfo")

    parts: dict[str, Optional[int]] = {
        name: counters.get(name) for name in ("buffered", "cached", "free")
    }
    present = [v for v in parts.values() if v is not None]
    if any(v < 0 for v in present) or total < 0:
        raise DataInconsistency("negative value in /proc/meminfo")

    accounted = sum(present)
    if total < accounted:
        raise DataInconsistency(
            f"MemTotal ({total}) smaller than free + buffered + cached ({accounted})"
        )

    # used needs every component, otherwise it absorbs the missing one
    used = total - accounted if len(present) == len(parts) else None

    return build_snapshot(
        [
            ("used", used),
            ("buffered", parts["buffered"]),
            ("cached", parts["cached"]),
            ("free", parts["free"]),
        ],
        total=float(total),
    )


class MeminfoSource(MemoryCounterSource):
    name = "meminfo"
    needs_page_size = False

    def __init__(self, path: Path | None = None) -> None:
        super().__init__()
        self._path = path

    @property
    def path(self) -> Path:
        return self._path if self._path is not None else PROC_MEMINFO

    def read_counters(self) -> RawCounterSet:
        try:
            contents = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ReadFailure(f"cannot read {self.path}: {e}") from e
        return parse_meminfo(contents)

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        return reconcile_meminfo(counters)
