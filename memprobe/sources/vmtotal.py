"""
memprobe.sources.vmtotal
AUTHOR: carter-vin

OpenBSD / NetBSD source via sysctl(CTL_VM, VM_METER) -> struct vmtotal

- active = t_arm (active resident pages)
- inactive = t_rm - t_arm (resident but not active)
- free = t_free
- percentage denominator = t_rm + t_free
"""

from __future__ import annotations

import ctypes
import ctypes.util
from ctypes import POINTER, Structure, byref, c_int, c_int16, c_int32, c_size_t, c_uint, c_void_p, sizeof
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

CTL_VM = 2
VM_METER = 1


class vmtotal(Structure):
    """
    sys/vmmeter.h
    """

    _fields_ = [
        ("t_rq", c_int16),
        ("t_dw", c_int16),
        ("t_pw", c_int16),
        ("t_sl", c_int16),
        ("t_sw", c_int16),
        ("t_vm", c_int32),
        ("t_avm", c_int32),
        ("t_rm", c_int32),
        ("t_arm", c_int32),
        ("t_vmshr", c_int32),
        ("t_avmshr", c_int32),
        ("t_rmshr", c_int32),
        ("t_armshr", c_int32),
        ("t_free", c_int32),
    ]


def reconcile_vmtotal(counters: RawCounterSet, page_size: int) -> Snapshot:
    t_arm = counters.get("t_arm")
    t_rm = counters.get("t_rm")
    t_free = counters.get("t_free")

    if t_arm is None or t_rm is None or t_free is None:
        raise ReadFailure("vmtotal is incomplete")
    if t_arm < 0 or t_rm < 0 or t_free < 0:
        raise DataInconsistency("negative page count in vmtotal")
    if t_rm < t_arm:
        raise DataInconsistency(f"resident pages ({t_rm}) smaller than active resident ({t_arm})")

    return build_snapshot(
        [
            ("active", page_counts_to_bytes(t_arm, page_size)),
            ("inactive", page_counts_to_bytes(t_rm - t_arm, page_size)),
            ("free", page_counts_to_bytes(t_free, page_size)),
        ],
        total=page_counts_to_bytes(t_rm + t_free, page_size),
    )


class VmtotalSource(MemoryCounterSource):
    name = "vmtotal"

    def __init__(self) -> None:
        super().__init__()
        self._sysctl = None

    def init(self, page_size: Optional[int]) -> None:
        super().init(page_size)
        try:
            libc = ctypes.CDLL(ctypes.util.find_library("c"), use_errno=True)
            fn = libc.sysctl
        except (OSError, AttributeError) as e:
            raise ProbeInitError(f"sysctl unavailable: {e}") from e
        fn.restype = c_int
        fn.argtypes = [POINTER(c_int), c_uint, c_void_p, POINTER(c_size_t), c_void_p, c_size_t]
        self._sysctl = fn

    def read_counters(self) -> RawCounterSet:
        if self._sysctl is None:
            raise ReadFailure("sysctl not initialized")

        mib = (c_int * 2)(CTL_VM, VM_METER)
        total = vmtotal()
        size = c_size_t(sizeof(total))
        if self._sysctl(mib, 2, byref(total), byref(size), None, 0) < 0:
            errno = ctypes.get_errno()
            raise ReadFailure(f"sysctl failed: errno={errno}")

        return {
            "t_arm": int(total.t_arm),
            "t_rm": int(total.t_rm),
            "t_free": int(total.t_free),
        }

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        assert self.page_size is not None
        return reconcile_vmtotal(counters, self.page_size)
