"""
memprobe.derive
AUTHOR: carter-vin

Percentage deriver: each category's share of the platform total
"""

from __future__ import annotations

from memprobe.model import CategoryValue, Snapshot

PERCENT_PREFIX = "percent_"


def _pct(value: float, total: float) -> float | None:
    if total <= 0:
        return None
    return (value / total) * 100.0


def derive_percentages(snapshot: Snapshot) -> list[CategoryValue]:
    """
    Return percent_<name> values, or [] when the denominator is not positive
    """
    total = snapshot.denominator()
    if total <= 0:
        return []

    derived: list[CategoryValue] = []
    for category in snapshot.categories:
        pct = _pct(category.value, total)
        if pct is not None:
            derived.append(CategoryValue(name=PERCENT_PREFIX + category.name, value=pct))
    return derived
