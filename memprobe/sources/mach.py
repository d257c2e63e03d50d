"""
memprobe.sources.mach
AUTHOR: carter-vin

macOS source via the Mach host_statistics(HOST_VM_INFO) call

Categories:
- wired: can't be paged out
- active: in RAM and recently used
- inactive: in RAM, not recently used, reclaimable
- free: unused
"""

from __future__ import annotations

import ctypes
import ctypes.util
from ctypes import POINTER, Structure, byref, c_int, c_size_t, c_uint32, sizeof
from typing import Optional

from memprobe.model import Snapshot, build_snapshot
from memprobe.sources.base import (
    MemoryCounterSource,
    ProbeInitError,
    RawCounterSet,
    ReadFailure,
    page_counts_to_bytes,
)

LIBSYSTEM_PATH = "/usr/lib/libSystem.B.dylib"

# mach/host_info.h
HOST_VM_INFO = 2
KERN_SUCCESS = 0


class vm_statistics(Structure):
    """
    mach/vm_statistics.h, 32-bit flavor; every field is a natural_t
    """

    _fields_ = [
        ("free_count", c_uint32),
        ("active_count", c_uint32),
        ("inactive_count", c_uint32),
        ("wire_count", c_uint32),
        ("zero_fill_count", c_uint32),
        ("reactivations", c_uint32),
        ("pageins", c_uint32),
        ("pageouts", c_uint32),
        ("faults", c_uint32),
        ("cow_faults", c_uint32),
        ("lookups", c_uint32),
        ("hits", c_uint32),
        ("purgeable_count", c_uint32),
        ("purges", c_uint32),
        ("speculative_count", c_uint32),
    ]


def _load_libsystem() -> ctypes.CDLL:
    path = ctypes.util.find_library("System") or LIBSYSTEM_PATH
    lib = ctypes.CDLL(path)

    lib.mach_host_self.restype = c_uint32
    lib.mach_host_self.argtypes = []
    lib.host_page_size.restype = c_int
    lib.host_page_size.argtypes = [c_uint32, POINTER(c_size_t)]
    lib.host_statistics.restype = c_int
    lib.host_statistics.argtypes = [c_uint32, c_int, POINTER(vm_statistics), POINTER(c_uint32)]
    return lib


def reconcile_mach(counters: RawCounterSet, page_size: int) -> Snapshot:
    """
    Multiply each page count by page size; total is the sum of the four
    """
    order = ("wired", "active", "inactive", "free")
    return build_snapshot(
        [
            (name, None if counters.get(name) is None else page_counts_to_bytes(counters[name], page_size))
            for name in order
        ]
    )


class MachSource(MemoryCounterSource):
    name = "mach"
    # host_page_size is queried on our own host port
    needs_page_size = False

    def __init__(self) -> None:
        super().__init__()
        self._lib: Optional[ctypes.CDLL] = None
        self._port: int = 0

    def init(self, page_size: Optional[int]) -> None:
        try:
            lib = _load_libsystem()
        except (OSError, AttributeError) as e:
            raise ProbeInitError(f"cannot load libSystem: {e}") from e

        port = lib.mach_host_self()
        if not port:
            raise ProbeInitError("mach_host_self returned no port")

        host_pagesize = c_size_t(0)
        status = lib.host_page_size(port, byref(host_pagesize))
        if status != KERN_SUCCESS or host_pagesize.value <= 0:
            raise ProbeInitError(f"host_page_size failed: status={status} pagesize={host_pagesize.value}")

        self._lib = lib
        self._port = port
        self.page_size = int(host_pagesize.value)

    def read_counters(self) -> RawCounterSet:
        if self._lib is None or not self._port or not self.page_size:
            raise ReadFailure("host port or page size not initialized")

        vm_data = vm_statistics()
        vm_data_len = c_uint32(sizeof(vm_data) // sizeof(c_uint32))
        status = self._lib.host_statistics(self._port, HOST_VM_INFO, byref(vm_data), byref(vm_data_len))
        if status != KERN_SUCCESS:
            raise ReadFailure(f"host_statistics failed and returned the value {status}")

        return {
            "wired": int(vm_data.wire_count),
            "active": int(vm_data.active_count),
            "inactive": int(vm_data.inactive_count),
            "free": int(vm_data.free_count),
        }

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        assert self.page_size is not None
        return reconcile_mach(counters, self.page_size)
