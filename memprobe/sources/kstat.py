"""
memprobe.sources.kstat
AUTHOR: carter-vin

Solaris / illumos source via the unix:0:system_pages kernel statistics table

The table is read with `kstat -p`, which prints one
`module:instance:name:statistic<TAB>value` line per statistic.

Correction rules (in order):
- negative total/free/locked -> invalid data, tick aborted
- total < free + locked (seen with very small swap) -> free = availrmem, used = 0
- kernel pages live inside locked; split them out
- unusable = physmem - pagestotal (pre-correction); omitted when negative
"""

from __future__ import annotations

import shutil
import subprocess
from typing import Optional

from memprobe.model import Snapshot, build_snapshot
from memprobe.sources.base import (
    DataInconsistency,
    MemoryCounterSource,
    ProbeInitError,
    RawCounterSet,
    ReadFailure,
    page_counts_to_bytes,
)

KSTAT_COMMAND = "kstat"
KSTAT_TABLE = "unix:0:system_pages"
KSTAT_TIMEOUT_S = 5.0

KSTAT_FIELDS = (
    "pagestotal",
    "pagesfree",
    "pageslocked",
    "pp_kernel",
    "physmem",
    "availrmem",
)


def parse_kstat_output(output: str) -> RawCounterSet:
    """
    Parse `kstat -p` lines into the counters we care about
    """
    values: RawCounterSet = {name: None for name in KSTAT_FIELDS}
    for line in output.splitlines():
        parts = line.split(None, 1)
        if len(parts) != 2:
            continue
        statistic = parts[0].rsplit(":", 1)[-1]
        if statistic not in values:
            continue
        try:
            values[statistic] = int(parts[1].strip())
        except ValueError:
            continue
    return values


def _non_negative(value: Optional[int]) -> Optional[int]:
    if value is None or value < 0:
        return None
    return value


def reconcile_kstat(counters: RawCounterSet, page_size: int) -> Snapshot:
    """
    Turn system_pages counters into used/free/locked/kernel/unusable bytes
    """
    pages_total = counters.get("pagestotal")
    mem_free = counters.get("pagesfree")
    mem_lock = counters.get("pageslocked")

    if pages_total is None or mem_free is None or mem_lock is None:
        raise DataInconsistency("one of used, free or locked is missing")
    if pages_total < 0 or mem_free < 0 or mem_lock < 0:
        raise DataInconsistency("one of used, free or locked is negative")

    pp_kernel = _non_negative(counters.get("pp_kernel"))
    physmem = _non_negative(counters.get("physmem"))
    availrmem = _non_negative(counters.get("availrmem"))

    mem_unus: Optional[int] = None
    if physmem is not None:
        mem_unus = physmem - pages_total
        if mem_unus < 0:
            mem_unus = None

    mem_used: Optional[int]
    if pages_total < mem_free + mem_lock:
        # Swap-starvation heuristic: pagestotal is unreliable here
        mem_free = availrmem
        mem_used = 0
    else:
        mem_used = pages_total - mem_free - mem_lock

    mem_kern: Optional[int] = None
    if pp_kernel is not None:
        if pp_kernel < mem_lock:
            mem_kern = pp_kernel
            mem_lock -= pp_kernel
        else:
            mem_kern = mem_lock
            mem_lock = 0

    def _bytes(pages: Optional[int]) -> Optional[float]:
        return None if pages is None else page_counts_to_bytes(pages, page_size)

    return build_snapshot(
        [
            ("used", _bytes(mem_used)),
            ("free", _bytes(mem_free)),
            ("locked", _bytes(mem_lock)),
            ("kernel", _bytes(mem_kern)),
            ("unusable", _bytes(mem_unus)),
        ]
    )


class KstatSource(MemoryCounterSource):
    name = "kstat"

    def __init__(self, command: str = KSTAT_COMMAND) -> None:
        super().__init__()
        self._command = command
        self._executable: Optional[str] = None

    def _run(self, executable: str) -> str:
        completed = subprocess.run(
            [executable, "-p", KSTAT_TABLE],
            capture_output=True,
            text=True,
            timeout=KSTAT_TIMEOUT_S,
            check=True,
        )
        return completed.stdout

    def init(self, page_size: Optional[int]) -> None:
        super().init(page_size)

        executable = shutil.which(self._command)
        if executable is None:
            raise ProbeInitError(f"{self._command} not found on PATH")

        try:
            output = self._run(executable)
        except (OSError, subprocess.SubprocessError) as e:
            raise ProbeInitError(f"cannot locate kstat {KSTAT_TABLE}: {e}") from e

        if all(v is None for v in parse_kstat_output(output).values()):
            raise ProbeInitError(f"kstat {KSTAT_TABLE} has no page statistics")

        self._executable = executable

    def read_counters(self) -> RawCounterSet:
        if self._executable is None:
            raise ReadFailure("kstat table was not located at init")
        try:
            output = self._run(self._executable)
        except (OSError, subprocess.SubprocessError) as e:
            raise ReadFailure(f"kstat {KSTAT_TABLE} failed: {e}") from e
        return parse_kstat_output(output)

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        assert self.page_size is not None
        return reconcile_kstat(counters, self.page_size)
