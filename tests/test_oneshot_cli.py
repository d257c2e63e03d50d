"""
Contract tests for the standalone host CLI
"""

import json
from pathlib import Path

from typer.testing import CliRunner

from memprobe.main import app
from memprobe.sources import meminfo as meminfo_module
from memprobe.sources import pagesize as pagesize_module
from memprobe.sources import sysctlbyname as sysctlbyname_module

MEMINFO_TEXT = "MemTotal: 1000000 kB\nMemFree: 200000 kB\nBuffers: 50000 kB\nCached: 150000 kB\n"


def _spool_values(spool_path: Path) -> list[dict]:
    return [json.loads(line) for line in spool_path.read_text(encoding="utf-8").splitlines()]


def _fake_meminfo(tmp_path: Path, monkeypatch, text: str = MEMINFO_TEXT) -> None:
    meminfo = tmp_path / "meminfo"
    meminfo.write_text(text, encoding="utf-8")
    monkeypatch.setattr(meminfo_module, "PROC_MEMINFO", meminfo)


def test_oneshot_writes_absolute_values(tmp_path: Path, monkeypatch) -> None:
    _fake_meminfo(tmp_path, monkeypatch)
    spool_path = tmp_path / "spool.jsonl"

    result = CliRunner().invoke(
        app,
        ["oneshot", "--source", "meminfo", "--no-stdout", "--spool-path", str(spool_path)],
        env={"MEMPROBE_HOSTNAME": "node-a"},
    )

    assert result.exit_code == 0
    values = {v["type_instance"]: v["value"] for v in _spool_values(spool_path)}
    assert values == {
        "used": 614400000.0,
        "buffered": 51200000.0,
        "cached": 153600000.0,
        "free": 204800000.0,
    }
    assert {v["host"] for v in _spool_values(spool_path)} == {"node-a"}


def test_oneshot_percentage_only(tmp_path: Path, monkeypatch) -> None:
    _fake_meminfo(tmp_path, monkeypatch)
    spool_path = tmp_path / "spool.jsonl"

    result = CliRunner().invoke(
        app,
        [
            "oneshot",
            "--source",
            "meminfo",
            "--no-stdout",
            "--spool-path",
            str(spool_path),
            "-o",
            "ValuesAbsolute=false",
            "-o",
            "ValuesPercentage=true",
        ],
    )

    assert result.exit_code == 0
    names = [v["type_instance"] for v in _spool_values(spool_path)]
    assert names == ["percent_used", "percent_buffered", "percent_cached", "percent_free"]


def test_oneshot_rejects_unknown_option(tmp_path: Path, monkeypatch) -> None:
    _fake_meminfo(tmp_path, monkeypatch)
    spool_path = tmp_path / "spool.jsonl"

    result = CliRunner().invoke(
        app,
        ["oneshot", "--source", "meminfo", "--spool-path", str(spool_path), "-o", "ValuesBogus=true"],
    )

    assert result.exit_code == 2
    assert not spool_path.exists()
    assert '"event_type":"config_rejected"' in result.stdout


def test_oneshot_inconsistent_meminfo_emits_nothing(tmp_path: Path, monkeypatch) -> None:
    _fake_meminfo(tmp_path, monkeypatch, "MemTotal: 10 kB\nMemFree: 20 kB\nBuffers: 0 kB\nCached: 0 kB\n")
    spool_path = tmp_path / "spool.jsonl"

    result = CliRunner().invoke(
        app,
        ["oneshot", "--source", "meminfo", "--no-stdout", "--spool-path", str(spool_path)],
    )

    assert result.exit_code == 0
    assert not spool_path.exists()
    assert '"event_type":"data_inconsistent"' in result.stdout


def test_oneshot_missing_meminfo_exits_nonzero(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(meminfo_module, "PROC_MEMINFO", tmp_path / "absent")

    result = CliRunner().invoke(
        app,
        ["oneshot", "--source", "meminfo", "--no-stdout", "--spool-path", str(tmp_path / "s.jsonl")],
    )

    assert result.exit_code == 1
    assert '"event_type":"read_failed"' in result.stdout


def test_oneshot_rotates_oversized_spool(tmp_path: Path, monkeypatch) -> None:
    _fake_meminfo(tmp_path, monkeypatch)
    spool_path = tmp_path / "spool.jsonl"
    spool_path.write_text("x" * 1000, encoding="utf-8")

    result = CliRunner().invoke(
        app,
        [
            "oneshot",
            "--source",
            "meminfo",
            "--no-stdout",
            "--spool-path",
            str(spool_path),
            "--spool-max-bytes",
            "1000",
            "--spool-rotate-count",
            "2",
        ],
    )

    assert result.exit_code == 0
    assert (tmp_path / "spool.1.jsonl").read_text(encoding="utf-8") == "x" * 1000
    assert len(_spool_values(spool_path)) == 4
    assert '"event_type":"spool_rotated"' in result.stdout


def test_oneshot_init_failure_exits_nonzero(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(pagesize_module.os, "sysconf", lambda _name: 0)
    spool_path = tmp_path / "spool.jsonl"

    result = CliRunner().invoke(
        app,
        ["oneshot", "--source", "vmtotal", "--no-stdout", "--spool-path", str(spool_path)],
    )

    assert result.exit_code == 1
    assert not spool_path.exists()
    assert '"event_type":"probe_init_failed"' in result.stdout


def test_oneshot_disabled_source_exits_nonzero(tmp_path: Path, monkeypatch) -> None:
    def broken_cdll(*args, **kwargs):
        raise OSError("no libc here")

    monkeypatch.setattr(sysctlbyname_module.ctypes, "CDLL", broken_cdll)
    spool_path = tmp_path / "spool.jsonl"

    result = CliRunner().invoke(
        app,
        ["oneshot", "--source", "sysctlbyname", "--no-stdout", "--spool-path", str(spool_path)],
    )

    assert result.exit_code == 1
    assert not spool_path.exists()
    assert '"event_type":"source_disabled"' in result.stdout


def test_run_init_failure_exits_without_ticking(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(pagesize_module.os, "sysconf", lambda _name: 0)

    result = CliRunner().invoke(
        app,
        [
            "run",
            "--source",
            "vmtotal",
            "--interval",
            "1",
            "--no-stdout",
            "--spool-path",
            str(tmp_path / "spool.jsonl"),
        ],
    )

    assert result.exit_code == 1
    assert '"event_type":"probe_init_failed"' in result.stdout
    assert '"event_type":"probe_tick"' not in result.stdout


def test_unknown_source_is_usage_error() -> None:
    result = CliRunner().invoke(app, ["oneshot", "--source", "nope"])

    assert result.exit_code == 2


def test_sources_lists_every_variant() -> None:
    result = CliRunner().invoke(app, ["sources"])

    assert result.exit_code == 0
    for name in ("mach", "sysctlbyname", "meminfo", "kstat", "vmtotal", "psutil", "perfstat"):
        assert name in result.stdout
