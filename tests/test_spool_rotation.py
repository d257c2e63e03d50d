"""
Contract tests for the spool dispatcher
"""

import json
from pathlib import Path

from memprobe.emit import EmitTargets, SpoolDispatcher, maybe_rotate_spool
from memprobe.model import make_value_list


def test_spool_rotation_creates_rotated_files(tmp_path: Path) -> None:
    """
    Spool rotates when max bytes threshold is reached
    """
    spool_path = tmp_path / "memory_values.jsonl"
    spool_path.write_text("x" * 200, encoding="utf-8")

    targets = EmitTargets(
        spool_path=spool_path,
        emit_stdout=False,
        spool_max_bytes=100,
        spool_rotate_count=2,
    )

    rotation_info = maybe_rotate_spool(targets)

    assert rotation_info is not None
    assert rotation_info["rotated_to"].endswith(".1.jsonl")
    assert rotation_info["prior_size_bytes"] == 200

    rotated = tmp_path / "memory_values.1.jsonl"
    assert rotated.exists()
    assert rotated.read_text(encoding="utf-8") == "x" * 200


def test_dispatcher_appends_one_line_per_value(tmp_path: Path) -> None:
    spool_path = tmp_path / "spool" / "memory_values.jsonl"
    dispatch = SpoolDispatcher(EmitTargets(spool_path=spool_path, emit_stdout=False))

    dispatch(make_value_list("host-a", "used", 10.0))
    dispatch(make_value_list("host-a", "free", 20.0))

    lines = [json.loads(line) for line in spool_path.read_text(encoding="utf-8").splitlines()]
    assert [line["type_instance"] for line in lines] == ["used", "free"]
    assert set(lines[0].keys()) == {"host", "plugin", "type", "type_instance", "value", "time"}


def test_dispatcher_reports_rotation(tmp_path: Path) -> None:
    spool_path = tmp_path / "memory_values.jsonl"
    spool_path.write_text("x" * 200, encoding="utf-8")
    rotations = []

    dispatch = SpoolDispatcher(
        EmitTargets(spool_path=spool_path, emit_stdout=False, spool_max_bytes=100),
        on_rotate=rotations.append,
    )
    dispatch(make_value_list("host-a", "used", 10.0))

    assert len(rotations) == 1
    assert len(spool_path.read_text(encoding="utf-8").splitlines()) == 1
