"""
memprobe.model
AUTHOR: carter-vin

Snapshot + emitted value primitives, deterministic serialization.

Design goals:
- Explicit structure (no accidental serialization via __dict__)
- Category order is the order the source produced (stable per platform)
- Nothing negative, NaN or infinite ever leaves a Snapshot
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

PLUGIN_NAME = "memory"
TYPE_NAME = "memory"


@dataclass(frozen=True)
class CategoryValue:
    """
    One named bucket of memory, in bytes
    """

    name: str
    value: float


@dataclass(frozen=True)
class Snapshot:
    """
    One tick's reconciled categories

    - categories: ordered, mutually exclusive buckets
    - total: platform-reported percentage denominator in bytes;
      None -> sum of categories
    """

    categories: tuple[CategoryValue, ...]
    total: Optional[float] = None

    def names(self) -> list[str]:
        return [c.name for c in self.categories]

    def as_dict(self) -> dict[str, float]:
        return {c.name: c.value for c in self.categories}

    def denominator(self) -> float:
        if self.total is not None:
            return self.total
        return sum(c.value for c in self.categories)


def build_snapshot(
    pairs: Iterable[tuple[str, Optional[float]]],
    *,
    total: Optional[float] = None,
) -> Snapshot:
    """
    Assemble a Snapshot, omitting categories whose value is None
    """
    categories = tuple(
        CategoryValue(name=name, value=float(value))
        for name, value in pairs
        if value is not None
    )
    snapshot = Snapshot(categories=categories, total=total)

    # validate before returning
    validate_snapshot(snapshot)
    return snapshot


def validate_snapshot(snapshot: Snapshot) -> None:
    """
    Raises ValueError when a Snapshot would emit a corrupt value
    """
    seen: set[str] = set()
    for category in snapshot.categories:
        if not category.name:
            raise ValueError("category name is empty")
        if category.name in seen:
            raise ValueError(f"duplicate category: {category.name}")
        seen.add(category.name)
        if not math.isfinite(category.value):
            raise ValueError(f"category {category.name} is not finite")
        if category.value < 0:
            raise ValueError(f"category {category.name} is negative: {category.value}")

    if snapshot.total is not None and not math.isfinite(snapshot.total):
        raise ValueError("snapshot total is not finite")


@dataclass(frozen=True)
class ValueList:
    """
    One gauge sample handed to the downstream pipeline
    """

    host: str
    plugin: str
    type: str
    type_instance: str
    value: float
    time: str

    def to_dict(self) -> dict[str, Any]:
        # Explicit key mapping for stability
        return {
            "host": self.host,
            "plugin": self.plugin,
            "type": self.type,
            "type_instance": self.type_instance,
            "value": self.value,
            "time": self.time,
        }


def utc_now_iso() -> str:
    """
    Current time in ISO 8601 (UTC)
    """
    return datetime.now(timezone.utc).isoformat()


def make_value_list(host: str, type_instance: str, value: float, *, time: str | None = None) -> ValueList:
    return ValueList(
        host=host,
        plugin=PLUGIN_NAME,
        type=TYPE_NAME,
        type_instance=type_instance,
        value=float(value),
        time=time or utc_now_iso(),
    )


def value_list_to_json(vl: ValueList) -> str:
    """
    Serialize a ValueList

    - sort_keys=True ensures stable key order
    - separators remove whitespace to avoid formatting drift
    """
    return json.dumps(
        vl.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
