"""
memprobe.sources.perfstat
AUTHOR: carter-vin

AIX source via libperfstat perfstat_memory_total()

Notes:
- counts are 4 KiB frames, scaled by the resolved page size
- cached/system/user are views into "used"; perfstat does not split them
  further, so only used + free partition real_total
- percentages use real_total, not the sum of categories
"""

from __future__ import annotations

import ctypes
import ctypes.util
from ctypes import POINTER, Structure, byref, c_int, c_ulonglong, c_void_p, sizeof
from typing import Optional

from memprobe.model import Snapshot, build_snapshot
from memprobe.sources.base import (
    MemoryCounterSource,
    ProbeInitError,
    RawCounterSet,
    ReadFailure,
    page_counts_to_bytes,
)

PERFSTAT_LIBRARY = "libperfstat.a(shr_64.o)"


class perfstat_memory_total_t(Structure):
    """
    libperfstat.h
    """

    _fields_ = [
        (name, c_ulonglong)
        for name in (
            "virt_total",
            "real_total",
            "real_free",
            "real_pinned",
            "real_inuse",
            "pgbad",
            "pgexct",
            "pgins",
            "pgouts",
            "pgspins",
            "pgspouts",
            "scans",
            "cycles",
            "pgsteals",
            "numperm",
            "pgsp_total",
            "pgsp_free",
            "pgsp_rsvd",
            "real_system",
            "real_user",
            "real_process",
            "virt_active",
            "iome",
            "iomu",
            "iohwm",
            "pmem",
            "comprsd_total",
            "comprsd_wseg_pgs",
            "cpgins",
            "cpgouts",
            "true_size",
            "expanded_memory",
            "comprsd_wseg_size",
            "target_cpool_size",
            "max_cpool_size",
            "min_ucpool_size",
            "cpool_size",
            "ucpool_size",
            "cpool_inuse",
            "ucpool_inuse",
            "version",
            "real_avail",
            "bytes_coalesced",
            "bytes_coalesced_mempool",
        )
    ]


# perfstat field -> category name
PERFSTAT_CATEGORIES = (
    ("real_inuse", "used"),
    ("real_free", "free"),
    ("numperm", "cached"),
    ("real_system", "system"),
    ("real_process", "user"),
)


def reconcile_perfstat(counters: RawCounterSet, page_size: int) -> Snapshot:
    pairs: list[tuple[str, Optional[float]]] = []
    for field, category in PERFSTAT_CATEGORIES:
        pages = counters.get(field)
        if pages is None or pages < 0:
            pairs.append((category, None))
        else:
            pairs.append((category, page_counts_to_bytes(pages, page_size)))

    real_total = counters.get("real_total")
    total = None if real_total is None else page_counts_to_bytes(real_total, page_size)
    return build_snapshot(pairs, total=total)


class PerfstatSource(MemoryCounterSource):
    name = "perfstat"

    def __init__(self) -> None:
        super().__init__()
        self._perfstat_memory_total = None

    def init(self, page_size: Optional[int]) -> None:
        super().init(page_size)
        try:
            lib = ctypes.CDLL(ctypes.util.find_library("perfstat") or PERFSTAT_LIBRARY, use_errno=True)
            fn = lib.perfstat_memory_total
        except (OSError, AttributeError) as e:
            raise ProbeInitError(f"cannot load libperfstat: {e}") from e
        fn.restype = c_int
        fn.argtypes = [c_void_p, POINTER(perfstat_memory_total_t), c_int, c_int]
        self._perfstat_memory_total = fn

    def read_counters(self) -> RawCounterSet:
        if self._perfstat_memory_total is None:
            raise ReadFailure("libperfstat not initialized")

        pmemory = perfstat_memory_total_t()
        if self._perfstat_memory_total(None, byref(pmemory), sizeof(pmemory), 1) < 0:
            raise ReadFailure(f"perfstat_memory_total failed: errno={ctypes.get_errno()}")

        counters: RawCounterSet = {"real_total": int(pmemory.real_total)}
        for field, _ in PERFSTAT_CATEGORIES:
            counters[field] = int(getattr(pmemory, field))
        return counters

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        assert self.page_size is not None
        return reconcile_perfstat(counters, self.page_size)
