"""
memprobe.probe
AUTHOR: carter-vin

The probe the host drives: configure() -> init() once -> read() per tick

Tick contract:
- read -> reconcile -> (percentages) -> dispatch, synchronously
- any source failure means nothing is dispatched for that tick
- failures are returned as data (TickResult) and logged, never raised
- at most one tick at a time; overlap is the scheduler's problem
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from memprobe import PROBE_VERSION
from memprobe.config import ProbeConfig, apply_option
from memprobe.emit import Dispatch, submit_snapshot
from memprobe.identity import resolve_host
from memprobe.logging import emit_event
from memprobe.sources.base import (
    DataInconsistency,
    MemoryCounterSource,
    SourceDisabled,
    run_source,
)
from memprobe.sources.pagesize import resolve_page_size

TICK_OK = "ok"
TICK_READ_FAILED = "read_failed"
TICK_DATA_INCONSISTENT = "data_inconsistent"
TICK_DISABLED = "disabled"
TICK_NOT_INITIALIZED = "not_initialized"
TICK_DISPATCH_FAILED = "dispatch_failed"


@dataclass(frozen=True)
class TickResult:
    """
    Outcome of one read tick
    - categories: absolute category names reconciled this tick
    """

    status: str
    values_dispatched: int = 0
    categories: tuple[str, ...] = ()
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == TICK_OK


class MemoryProbe:
    """
    Owns one platform source, the config gate, and the dispatch hook
    """

    def __init__(
        self,
        source: MemoryCounterSource,
        *,
        dispatch: Dispatch,
        config: ProbeConfig | None = None,
        host: str | None = None,
        mode: str = "run",
    ) -> None:
        self.source = source
        self.config = config if config is not None else ProbeConfig()
        self.host = host if host is not None else resolve_host()
        self.mode = mode
        self._dispatch = dispatch
        self._initialized = False
        self._disabled = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def disabled(self) -> bool:
        return self._disabled

    def _event(self, event_type: str, *, severity: str = "info", **fields: Any) -> None:
        emit_event(
            event_type,
            probe_version=PROBE_VERSION,
            severity=severity,
            mode=self.mode,
            source=self.source.name,
            **fields,
        )

    def configure(self, key: str, value: str) -> None:
        """
        Apply one ValuesAbsolute / ValuesPercentage option

        Raises ConfigError for unknown keys
        """
        self.config = apply_option(self.config, key, value)

    def init(self) -> bool:
        """
        Resolve page size + platform handle once; False means never schedule reads
        """

        def _init() -> None:
            page_size = resolve_page_size(self.source.needs_page_size)
            self.source.init(page_size)

        outcome = run_source(self.source.name, _init)
        if not outcome.ok:
            self._initialized = False
            self._event(
                "probe_init_failed",
                severity="error",
                error_type=outcome.error_type,
                message=outcome.error_message,
            )
            return False

        self._initialized = True
        return True

    def read(self) -> TickResult:
        """
        Run one tick
        """
        if self._disabled:
            return TickResult(status=TICK_DISABLED)
        if not self._initialized:
            return TickResult(status=TICK_NOT_INITIALIZED)

        outcome = run_source(self.source.name, self.source.read)

        if not outcome.ok:
            if isinstance(outcome.error, SourceDisabled):
                self._disabled = True
                self._event(
                    "source_disabled",
                    severity="error",
                    error_type=outcome.error_type,
                    message=outcome.error_message,
                )
                status = TICK_DISABLED
            elif isinstance(outcome.error, DataInconsistency):
                self._event(
                    "data_inconsistent",
                    severity="warning",
                    error_type=outcome.error_type,
                    message=outcome.error_message,
                )
                status = TICK_DATA_INCONSISTENT
            else:
                self._event(
                    "read_failed",
                    severity="error",
                    error_type=outcome.error_type,
                    message=outcome.error_message,
                )
                status = TICK_READ_FAILED
            return TickResult(
                status=status,
                error_type=outcome.error_type,
                error_message=outcome.error_message,
            )

        snapshot = outcome.value
        names = tuple(snapshot.names())

        try:
            submitted = submit_snapshot(snapshot, self.config, self._dispatch, host=self.host)
        except Exception as e:
            # Dispatcher owns delivery; it already reported its own failure
            return TickResult(
                status=TICK_DISPATCH_FAILED,
                categories=names,
                error_type=type(e).__name__,
                error_message=str(e),
            )

        self._event(
            "values_dispatched",
            values=submitted,
            categories=list(names),
        )
        return TickResult(status=TICK_OK, values_dispatched=submitted, categories=names)
