"""
memprobe.emit

AUTHOR: carter-vin

Emitter gateway + the standalone host's dispatcher.

Gateway:
- one gauge sample per authorized category (absolute first, then percent_*)
- plugin "memory", type "memory", type_instance = category name
- the dispatcher is whatever the host hands us; we only call it

Spool dispatcher (host side):
- JSON Lines spool file, one value per line, append-only
- create spool directory if missing
- flush per write so tail/ingest can see updates immediately
- size-based rotation
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from memprobe.config import ProbeConfig
from memprobe.derive import derive_percentages
from memprobe.model import Snapshot, ValueList, make_value_list, utc_now_iso, value_list_to_json

DEFAULT_SPOOL_DIR = Path("spool")
DEFAULT_SPOOL_FILE = DEFAULT_SPOOL_DIR / "memory_values.jsonl"

Dispatch = Callable[[ValueList], None]


def submit_snapshot(snapshot: Snapshot, config: ProbeConfig, dispatch: Dispatch, *, host: str) -> int:
    """
    Hand every authorized value to dispatch; returns the number submitted
    """
    submitted = 0
    now = utc_now_iso()

    if config.values_absolute:
        for category in snapshot.categories:
            dispatch(make_value_list(host, category.name, category.value, time=now))
            submitted += 1

    if config.values_percentage:
        for category in derive_percentages(snapshot):
            dispatch(make_value_list(host, category.name, category.value, time=now))
            submitted += 1

    return submitted


@dataclass(frozen=True)
class EmitTargets:
    """
    Emission destination configuration.
    """

    spool_path: Path = DEFAULT_SPOOL_FILE
    emit_stdout: bool = True
    spool_max_bytes: int | None = None
    spool_rotate_count: int = 3


def _rotation_path(spool_path: Path, index: int) -> Path:
    """
    Build rotation path with numeric suffix
    """
    return spool_path.with_name(f"{spool_path.stem}.{index}{spool_path.suffix}")


def maybe_rotate_spool(targets: EmitTargets) -> dict[str, Any] | None:
    """
    Rotate spool file when it exceeds max size

    Returns rotation info when a rotation happened, else None
    """
    if targets.spool_max_bytes is None or targets.spool_max_bytes <= 0:
        return None

    if targets.spool_rotate_count < 1:
        return None

    if not targets.spool_path.exists():
        return None

    prior_size = targets.spool_path.stat().st_size
    if prior_size < targets.spool_max_bytes:
        return None

    # Rotate oldest first to keep shifts deterministic
    for index in range(targets.spool_rotate_count, 1, -1):
        src = _rotation_path(targets.spool_path, index - 1)
        dst = _rotation_path(targets.spool_path, index)
        if dst.exists():
            dst.unlink()
        if src.exists():
            src.rename(dst)

    first = _rotation_path(targets.spool_path, 1)
    if first.exists():
        first.unlink()
    targets.spool_path.rename(first)

    return {
        "rotated_to": str(first),
        "prior_size_bytes": prior_size,
    }


def append_jsonl_line(spool_path: Path, line: str) -> None:
    """
    Append a single JSON string as one JSONL line.

    Failure semantics:
    - raises on IO errors; caller decides how to handle
    """
    spool_path.parent.mkdir(parents=True, exist_ok=True)

    with spool_path.open(mode="a", encoding="utf-8", newline="\n") as f:
        f.write(line)
        f.write("\n")
        f.flush()


class SpoolDispatcher:
    """
    Dispatch callable writing each ValueList to stdout and/or the spool
    """

    def __init__(
        self,
        targets: EmitTargets,
        *,
        on_spool_error: Optional[Callable[[Exception, Path], None]] = None,
        on_rotate: Optional[Callable[[dict[str, Any]], None]] = None,
    ) -> None:
        self.targets = targets
        self._on_spool_error = on_spool_error
        self._on_rotate = on_rotate

    def __call__(self, vl: ValueList) -> None:
        line = value_list_to_json(vl)

        if self.targets.emit_stdout:
            print(line)

        try:
            rotation = maybe_rotate_spool(self.targets)
            append_jsonl_line(self.targets.spool_path, line)
        except Exception as e:
            # Callback allows the caller to surface spool errors without coupling modules
            if self._on_spool_error is not None:
                self._on_spool_error(e, self.targets.spool_path)
            raise

        if rotation is not None and self._on_rotate is not None:
            self._on_rotate(rotation)
