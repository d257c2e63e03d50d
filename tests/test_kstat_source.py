"""
Contract tests for the kstat system_pages source
"""

import subprocess

import pytest

from memprobe.derive import derive_percentages
from memprobe.sources import kstat as kstat_module
from memprobe.sources.base import DataInconsistency, ProbeInitError, ReadFailure
from memprobe.sources.kstat import KstatSource, parse_kstat_output, reconcile_kstat

KSTAT_OUTPUT = """\
unix:0:system_pages:availrmem\t80
unix:0:system_pages:class\tpages
unix:0:system_pages:crtime\t0
unix:0:system_pages:pagesfree\t100
unix:0:system_pages:pageslocked\t950
unix:0:system_pages:pagestotal\t1000
unix:0:system_pages:physmem\t1100
unix:0:system_pages:pp_kernel\t40
"""


def _counters(**overrides):
    counters = {
        "pagestotal": 1000,
        "pagesfree": 300,
        "pageslocked": 200,
        "pp_kernel": 50,
        "physmem": 1100,
        "availrmem": 80,
    }
    counters.update(overrides)
    return counters


def test_parse_kstat_output() -> None:
    values = parse_kstat_output(KSTAT_OUTPUT)

    assert values == {
        "pagestotal": 1000,
        "pagesfree": 100,
        "pageslocked": 950,
        "pp_kernel": 40,
        "physmem": 1100,
        "availrmem": 80,
    }


def test_swap_starvation_uses_availrmem() -> None:
    """
    free + locked > total -> free = availrmem, used = 0, no error
    """
    snapshot = reconcile_kstat(
        _counters(pagestotal=1000, pagesfree=100, pageslocked=950, availrmem=80),
        1,
    )
    values = snapshot.as_dict()

    assert values["free"] == 80
    assert values["used"] == 0


def test_kernel_split_when_kernel_smaller_than_locked() -> None:
    values = reconcile_kstat(_counters(pageslocked=200, pp_kernel=50), 1).as_dict()

    assert values["kernel"] == 50
    assert values["locked"] == 150


def test_kernel_split_when_kernel_exceeds_locked() -> None:
    values = reconcile_kstat(_counters(pageslocked=200, pp_kernel=300), 1).as_dict()

    assert values["kernel"] == 200
    assert values["locked"] == 0


def test_swap_starvation_without_availrmem_omits_free() -> None:
    snapshot = reconcile_kstat(
        _counters(pagestotal=1000, pagesfree=100, pageslocked=950, availrmem=None),
        1,
    )

    assert "free" not in snapshot.names()
    assert snapshot.as_dict()["used"] == 0


def test_missing_pp_kernel_leaves_locked_unsplit() -> None:
    snapshot = reconcile_kstat(_counters(pp_kernel=None), 1)

    assert "kernel" not in snapshot.names()
    assert snapshot.as_dict()["locked"] == 200


def test_normal_case_scaled_by_page_size() -> None:
    values = reconcile_kstat(_counters(), 4096).as_dict()

    assert values == {
        "used": 500 * 4096,
        "free": 300 * 4096,
        "locked": 150 * 4096,
        "kernel": 50 * 4096,
        "unusable": 100 * 4096,
    }


def test_negative_counter_aborts_tick() -> None:
    with pytest.raises(DataInconsistency, match="negative"):
        reconcile_kstat(_counters(pagesfree=-1), 1)


def test_negative_unusable_is_omitted() -> None:
    """
    physmem < pagestotal would give negative unusable; the category is dropped
    """
    snapshot = reconcile_kstat(_counters(physmem=900), 1)

    assert "unusable" not in snapshot.names()
    assert all(c.value >= 0 for c in snapshot.categories)


def test_unusable_uses_total_before_correction() -> None:
    """
    The starvation correction does not change unusable
    """
    values = reconcile_kstat(
        _counters(pagestotal=1000, pagesfree=100, pageslocked=950, physmem=1100),
        1,
    ).as_dict()

    assert values["unusable"] == 100


def test_percentages_sum_to_hundred() -> None:
    snapshot = reconcile_kstat(_counters(), 4096)

    total = sum(c.value for c in derive_percentages(snapshot))

    assert abs(total - 100.0) < 0.5


def test_init_fails_without_kstat_binary(monkeypatch) -> None:
    monkeypatch.setattr(kstat_module.shutil, "which", lambda _name: None)

    with pytest.raises(ProbeInitError):
        KstatSource().init(4096)


def test_read_runs_kstat_command(monkeypatch) -> None:
    """
    The located binary is run once at init and once per tick
    """
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout=KSTAT_OUTPUT, stderr="")

    monkeypatch.setattr(kstat_module.shutil, "which", lambda _name: "/usr/bin/kstat")
    monkeypatch.setattr(kstat_module.subprocess, "run", fake_run)

    source = KstatSource()
    source.init(4096)
    snapshot = source.read()

    assert calls == [["/usr/bin/kstat", "-p", "unix:0:system_pages"]] * 2
    assert snapshot.as_dict()["free"] == 80 * 4096


def test_failed_command_at_tick_is_read_failure(monkeypatch) -> None:
    outputs = [KSTAT_OUTPUT]

    def fake_run(args, **kwargs):
        if outputs:
            return subprocess.CompletedProcess(args, 0, stdout=outputs.pop(), stderr="")
        raise subprocess.CalledProcessError(1, args)

    monkeypatch.setattr(kstat_module.shutil, "which", lambda _name: "/usr/bin/kstat")
    monkeypatch.setattr(kstat_module.subprocess, "run", fake_run)

    source = KstatSource()
    source.init(4096)

    with pytest.raises(ReadFailure):
        source.read()
