"""memprobe.sources package exports + platform selection."""

from __future__ import annotations

import platform
from typing import Optional

from memprobe.sources.base import MemoryCounterSource
from memprobe.sources.kstat import KstatSource
from memprobe.sources.mach import MachSource
from memprobe.sources.meminfo import MeminfoSource
from memprobe.sources.perfstat import PerfstatSource
from memprobe.sources.psutil_stats import PsutilSource
from memprobe.sources.sysctlbyname import SysctlByNameSource
from memprobe.sources.vmtotal import VmtotalSource

SOURCES: dict[str, type[MemoryCounterSource]] = {
    cls.name: cls
    for cls in (
        MachSource,
        SysctlByNameSource,
        MeminfoSource,
        KstatSource,
        VmtotalSource,
        PsutilSource,
        PerfstatSource,
    )
}

# platform.system() -> source name; anything else falls back to psutil
PLATFORM_SOURCES = {
    "Darwin": "mach",
    "FreeBSD": "sysctlbyname",
    "DragonFly": "sysctlbyname",
    "Linux": "meminfo",
    "SunOS": "kstat",
    "OpenBSD": "vmtotal",
    "NetBSD": "vmtotal",
    "AIX": "perfstat",
}
FALLBACK_SOURCE = "psutil"


def default_source_name(system: Optional[str] = None) -> str:
    if system is None:
        system = platform.system()
    return PLATFORM_SOURCES.get(system, FALLBACK_SOURCE)


def select_source(name: Optional[str] = None, *, system: Optional[str] = None) -> MemoryCounterSource:
    """
    Build the source for this process; name=None or "auto" picks by OS
    """
    if name is None or name == "auto":
        name = default_source_name(system)
    try:
        cls = SOURCES[name]
    except KeyError:
        raise ValueError(f"unknown source: {name} (known: {', '.join(sorted(SOURCES))})") from None
    return cls()


__all__ = [
    "FALLBACK_SOURCE",
    "PLATFORM_SOURCES",
    "SOURCES",
    "default_source_name",
    "select_source",
]
