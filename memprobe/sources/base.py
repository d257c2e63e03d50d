"""
memprobe.sources.base
AUTHOR: carter-vin

Shared source contract + failure-as-data wrapper

Every platform source:
- reads a RawCounterSet (counter name -> int or None when absent)
- reconciles it into a Snapshot with a pure function (testable without the OS)
- raises one of the errors below instead of returning partial data
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from memprobe.model import Snapshot

RawCounterSet = dict[str, Optional[int]]


class ProbeError(Exception):
    """Root of all probe errors"""


class ProbeInitError(ProbeError):
    """Page size or platform handle could not be established (fatal)"""


class ReadFailure(ProbeError):
    """The platform facility failed for this tick"""


class DataInconsistency(ProbeError):
    """Counters were read but their relationships are invalid"""


class SourceDisabled(ProbeError):
    """Facility proven unusable at first use; no further reads"""


class MemoryCounterSource:
    """
    One platform family's memory facility

    Lifecycle:
    - init(page_size) once; page_size is None when needs_page_size is False
    - read() once per tick -> Snapshot
    """

    name: str = ""
    needs_page_size: bool = True

    def __init__(self) -> None:
        self.page_size: Optional[int] = None

    def init(self, page_size: Optional[int]) -> None:
        if self.needs_page_size and (page_size is None or page_size <= 0):
            raise ProbeInitError(f"{self.name}: invalid page size: {page_size}")
        self.page_size = page_size

    def read_counters(self) -> RawCounterSet:
        raise NotImplementedError

    def reconcile(self, counters: RawCounterSet) -> Snapshot:
        raise NotImplementedError

    def read(self) -> Snapshot:
        return self.reconcile(self.read_counters())


@dataclass(frozen=True)
class SourceOutcome:
    """
    Normalized source result
    - ok: false=failure, error details in error fields
    - value: Snapshot (read) or None (init) when ok=true
    """

    name: str
    ok: bool
    value: Optional[Any] = None
    error: Optional[ProbeError] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None


def run_source(name: str, fn, *args, **kwargs) -> SourceOutcome:
    """
    Run a source call & collect failure as data

    Anything that is not already a ProbeError is a read failure.
    `error` is always a ProbeError; when it wraps another exception,
    `error_type` and `error_message` describe the underlying cause
    (e.g. OSError), not the ReadFailure wrapper.
    """
    try:
        v = fn(*args, **kwargs)
        return SourceOutcome(name=name, ok=True, value=v)
    except ProbeError as e:
        return SourceOutcome(
            name=name,
            ok=False,
            error=e,
            error_type=type(e).__name__,
            error_message=str(e),
        )
    except Exception as e:
        wrapped = ReadFailure(f"{type(e).__name__}: {e}")
        return SourceOutcome(
            name=name,
            ok=False,
            error=wrapped,
            error_type=type(e).__name__,
            error_message=str(e),
        )


def page_counts_to_bytes(pages: int, page_size: int) -> float:
    """
    Scale a page count to bytes as a gauge value
    """
    return float(pages * page_size)
