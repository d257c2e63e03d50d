"""
memprobe.main
------------
AUTHOR: carter-vin

Standalone host for the memory probe:
- configure from --option Key=Value
- init once; a failed init never schedules reads
- tick once (oneshot) or on a fixed interval (run)
- dispatch to stdout + JSONL spool

Key contract:
- `memory-probe --help` shows a Commands section.
- `memory-probe oneshot` exits 0 on success or data warning, 1 on failure,
  2 on a rejected configuration key.
"""

from __future__ import annotations

import platform
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import typer

from memprobe import PROBE_VERSION
from memprobe.config import ConfigError, parse_option
from memprobe.emit import DEFAULT_SPOOL_FILE, EmitTargets, SpoolDispatcher
from memprobe.logging import emit_event
from memprobe.probe import TICK_DATA_INCONSISTENT, TICK_OK, MemoryProbe, TickResult
from memprobe.sources import SOURCES, default_source_name, select_source

# Explicit multi-command CLI
app = typer.Typer(
    add_completion=False,
    help="memory-probe: periodic memory accounting probe",
)


# -----------------------------
# DATA CLASSES
# -----------------------------
@dataclass(frozen=True)
class EnvironmentInfo:
    """
    Snapshot of the runtime environment
    """

    python_version: str
    os: str
    machine: str
    utc_now: str


def collect_environment_info() -> EnvironmentInfo:
    return EnvironmentInfo(
        python_version=sys.version.split()[0],
        os=f"{platform.system()} {platform.release()}",
        machine=platform.machine(),
        utc_now=datetime.now(timezone.utc).isoformat(),
    )


# -----------------------------
# ROOT COMMAND BEHAVIOR
# -----------------------------
@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """
    Root command behavior.
    """
    if ctx.invoked_subcommand is None:
        typer.echo("No command provided. Try: memory-probe --help")


# -----------------------------
# HELPERS
# -----------------------------
def _build_probe(
    *,
    mode: str,
    source: str,
    options: list[str] | None,
    targets: EmitTargets,
) -> MemoryProbe:
    """
    Select the source, wire the spool dispatcher, apply options

    Raises typer.Exit(2) on unknown source or rejected option
    """
    try:
        source_impl = select_source(source)
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2)

    def _on_spool_error(e: Exception, path: Path) -> None:
        emit_event(
            "spool_write_failed",
            probe_version=PROBE_VERSION,
            severity="error",
            mode=mode,
            spool_path=str(path),
            error_type=type(e).__name__,
            message=str(e),
        )

    def _on_rotate(info: dict[str, Any]) -> None:
        emit_event(
            "spool_rotated",
            probe_version=PROBE_VERSION,
            mode=mode,
            **info,
        )

    dispatcher = SpoolDispatcher(targets, on_spool_error=_on_spool_error, on_rotate=_on_rotate)
    probe = MemoryProbe(source_impl, dispatch=dispatcher, mode=mode)

    for option in options or []:
        try:
            key, value = parse_option(option)
            probe.configure(key, value)
        except ConfigError as e:
            emit_event(
                "config_rejected",
                probe_version=PROBE_VERSION,
                severity="error",
                mode=mode,
                option=option,
                message=str(e),
            )
            raise typer.Exit(code=2)

    return probe


def _tick_event(mode: str, result: TickResult, **fields: Any) -> None:
    emit_event(
        "probe_tick",
        probe_version=PROBE_VERSION,
        severity="info" if result.ok else "warning",
        mode=mode,
        status=result.status,
        values_dispatched=result.values_dispatched,
        **fields,
    )


# -----------------------------
# CLI COMMANDS
# -----------------------------
@app.command()
def version() -> None:
    """
    Print probe version & runtime env
    """
    env = collect_environment_info()

    typer.echo(f"memory-probe v{PROBE_VERSION}")
    typer.echo(f"python={env.python_version}")
    typer.echo(f"os={env.os}")
    typer.echo(f"machine={env.machine}")
    typer.echo(f"utc_now={env.utc_now}")


@app.command("sources")
def sources() -> None:
    """
    List memory sources; * marks the one auto-selected here
    """
    selected = default_source_name()
    for name in sorted(SOURCES):
        marker = "*" if name == selected else " "
        typer.echo(f"{marker} {name}")


@app.command("oneshot")
def oneshot(
    source: str = typer.Option(
        "auto",
        help="Memory source name (see `sources`); auto picks by OS.",
    ),
    option: list[str] | None = typer.Option(
        None,
        "--option",
        "-o",
        help="Config option Key=Value (ValuesAbsolute, ValuesPercentage). Repeatable.",
    ),
    spool_path: str = typer.Option(
        str(DEFAULT_SPOOL_FILE),
        help="Path to JSONL spool file for value emission.",
    ),
    no_stdout: bool = typer.Option(
        False,
        "--no-stdout",
        help="Disable printing values to stdout.",
    ),
    spool_max_bytes: int | None = typer.Option(
        None,
        help="Rotate the spool once it reaches this size.",
    ),
    spool_rotate_count: int = typer.Option(
        3,
        help="Number of rotated spool files to keep.",
    ),
) -> None:
    """
    Init, run a single tick and exit
    """
    targets = EmitTargets(
        spool_path=Path(spool_path),
        emit_stdout=not no_stdout,
        spool_max_bytes=spool_max_bytes,
        spool_rotate_count=spool_rotate_count,
    )
    probe = _build_probe(mode="oneshot", source=source, options=option, targets=targets)

    emit_event(
        "probe_start",
        probe_version=PROBE_VERSION,
        mode="oneshot",
        source=probe.source.name,
        spool_path=spool_path,
    )

    try:
        if not probe.init():
            raise typer.Exit(code=1)

        start = time.monotonic()
        result = probe.read()
        elapsed_ms = int((time.monotonic() - start) * 1000)
        _tick_event("oneshot", result, tick_elapsed_ms=elapsed_ms)

        if result.status not in (TICK_OK, TICK_DATA_INCONSISTENT):
            raise typer.Exit(code=1)

    finally:
        emit_event(
            "probe_shutdown",
            probe_version=PROBE_VERSION,
            mode="oneshot",
        )


@app.command("run")
def run(
    interval: int = typer.Option(
        10,
        help="Read interval (seconds).",
        min=1,
    ),
    source: str = typer.Option(
        "auto",
        help="Memory source name (see `sources`); auto picks by OS.",
    ),
    option: list[str] | None = typer.Option(
        None,
        "--option",
        "-o",
        help="Config option Key=Value (ValuesAbsolute, ValuesPercentage). Repeatable.",
    ),
    spool_path: str = typer.Option(
        str(DEFAULT_SPOOL_FILE),
        help="Path to JSONL spool file for value emission.",
    ),
    no_stdout: bool = typer.Option(
        False,
        "--no-stdout",
        help="Disable printing values to stdout.",
    ),
    spool_max_bytes: int | None = typer.Option(
        None,
        help="Rotate the spool once it reaches this size.",
    ),
    spool_rotate_count: int = typer.Option(
        3,
        help="Number of rotated spool files to keep.",
    ),
) -> None:
    """
    Run the probe on a fixed interval until interrupted
    """
    targets = EmitTargets(
        spool_path=Path(spool_path),
        emit_stdout=not no_stdout,
        spool_max_bytes=spool_max_bytes,
        spool_rotate_count=spool_rotate_count,
    )
    probe = _build_probe(mode="run", source=source, options=option, targets=targets)

    emit_event(
        "probe_start",
        probe_version=PROBE_VERSION,
        mode="run",
        source=probe.source.name,
        interval_s=interval,
        spool_path=spool_path,
    )

    try:
        if not probe.init():
            raise typer.Exit(code=1)

        while True:
            start = time.monotonic()

            result = probe.read()

            elapsed = time.monotonic() - start
            sleep_s = max(0.0, interval - elapsed)
            _tick_event(
                "run",
                result,
                interval_s=interval,
                tick_elapsed_ms=int(elapsed * 1000),
                sleep_ms=int(sleep_s * 1000),
                overrun=elapsed > interval,
            )

            time.sleep(sleep_s)

    except KeyboardInterrupt:
        # Graceful shutdown on Ctrl+C
        pass

    finally:
        emit_event(
            "probe_shutdown",
            probe_version=PROBE_VERSION,
            mode="run",
        )


if __name__ == "__main__":
    app()
