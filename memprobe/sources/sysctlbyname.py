"""
memprobe.sources.sysctlbyname
AUTHOR: carter-vin

FreeBSD / DragonFly source via named sysctls

Example values:
  vm.stats.vm.v_page_size: 4096
  vm.stats.vm.v_page_count: 246178
  vm.stats.vm.v_free_count: 28760
  vm.stats.vm.v_wire_count: 37526
  vm.stats.vm.v_active_count: 55239
  vm.stats.vm.v_inactive_count: 113730
  vm.stats.vm.v_cache_count: 10809

Each counter is read on its own; one that fails is absent, not zero.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import sys
from ctypes import POINTER, byref, c_char_p, c_int, c_size_t, c_void_p
from typing import Optional

from memprobe.model import Snapshot, build_snapshot
from memprobe.sources.base import (
    MemoryCounterSource,
    RawCounterSet,
    ReadFailure,
    SourceDisabled,
    page_counts_to_bytes,
)

PAGE_SIZE_KEY = "vm.stats.vm.v_page_size"

# sysctl name -> category name (None: read but not emitted)
SYSCTL_KEYS: tuple[tuple[str, Optional[str]], ...] = (
    (PAGE_SIZE_KEY, None),
    ("vm.stats.vm.v_page_count", None),
    ("vm.stats.vm.v_free_count", "free"),
    ("vm.stats.vm.v_wire_count", "wired"),
    ("vm.stats.vm.v_active_count", "active"),
    ("vm.stats.vm.v_inactive_count", "inactive"),
    ("vm.stats.vm.v_cache_count", "cache"),
)

# Large enough for int/u_int/u_long counters
_VALUE_BUFFER_SIZE = 8


def reconcile_sysctl(counters: RawCounterSet) -> Snapshot:
    """
    Scale every present page counter by the page-size counter
    """
    page_size = counters.get(PAGE_SIZE_KEY)
    if page_size is None or page_size <= 0:
        raise ReadFailure(f"{PAGE_SIZE_KEY} unavailable: {page_size}")

    pairs: list[tuple[str, Optional[float]]] = []
    for key, category in SYSCTL_KEYS:
        if category is None:
            continue
        pages = counters.get(key)
        if pages is None or pages < 0:
            pairs.append((category, None))
        else:
            pairs.append((category, page_counts_to_bytes(pages, page_size)))
    return build_snapshot(pairs)


class SysctlByNameSource(MemoryCounterSource):
    name = "sysctlbyname"
    # the page size is one of the counters
    needs_page_size = False

    def __init__(self) -> None:
        super().__init__()
        self._sysctlbyname = None

    def _function(self):
        if self._sysctlbyname is not None:
            return self._sysctlbyname
        try:
            libc = ctypes.CDLL(ctypes.util.find_library("c"), use_errno=True)
            fn = libc.sysctlbyname
        except (OSError, AttributeError) as e:
            raise SourceDisabled(f"sysctlbyname unavailable: {e}") from e
        fn.restype = c_int
        fn.argtypes = [c_char_p, c_void_p, POINTER(c_size_t), c_void_p, c_size_t]
        self._sysctlbyname = fn
        return fn

    def _read_one(self, key: str) -> Optional[int]:
        fn = self._function()
        buf = ctypes.create_string_buffer(_VALUE_BUFFER_SIZE)
        value_len = c_size_t(_VALUE_BUFFER_SIZE)
        if fn(key.encode("ascii"), buf, byref(value_len), None, 0) != 0:
            return None
        if value_len.value == 0 or value_len.value > _VALUE_BUFFER_SIZE:
            return None
        return int.from_bytes(buf.raw[: value_len.value], sys.byteorder)

    def read_counters(self) -> RawCounterSet:
        return {key: self._read_one(key) for key, _ in SYSCTL_KEYS}

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        return reconcile_sysctl(counters)
