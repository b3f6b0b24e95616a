# ==============================================
# ValueTracker
# ==============================================
#
# PURPOSE:
#   Track, for one (field, type) pair, how many values were
#   observed and how many of them were distinct.
#
# STRATEGIES:
# -----------
# - Strategy.EXACT
#     Keeps a set of canonical value keys. Correct, but memory
#     grows with the number of distinct values. Once the set
#     passes `exact_ceiling` the tracker degrades to a sketch
#     seeded from the set and is flagged `degraded`.
#
# - Strategy.APPROXIMATE
#     Keeps a datasketch HyperLogLog with 2**p registers.
#     Relative error is about 1.04 / sqrt(2**p)
#     (p=14 → ~0.8%).
#
# CLASS: ValueTracker
# -------------------
#   - observe(raw_value)       → count += 1, record value key
#   - unique_count() -> int    → distinct values (exact or estimated)
#   - has_duplicates() -> bool → count > unique_count()
#   - merge(other)             → in place; associative & commutative
#   - copy()                   → independent deep copy
#   - to_snapshot()/from_snapshot() → partial-aggregate exchange
#
# CLASS: TrackerSettings (frozen dataclass)
# -----------------------------------------
#   Decides the strategy per field before ingestion starts and
#   builds new trackers accordingly.
#
# ==============================================

import numbers
from enum import Enum
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Set

import numpy as np
from bson import json_util
from datasketch import HyperLogLog

from docschema.errors import IncompatibleMerge, SnapshotError


DEFAULT_EXACT_CEILING = 100_000
DEFAULT_SKETCH_PRECISION = 14


class Strategy(Enum):
    """How a tracker records distinct values."""
    EXACT = "exact"
    APPROXIMATE = "approximate"

    @classmethod
    def parse(cls, value: Any) -> "Strategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown tracker strategy {value!r} (expected 'exact' or 'approximate')"
            ) from None


def _stable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float)):
        return value
    # sets iterate in hash order, which differs between processes
    if isinstance(value, (set, frozenset)):
        return sorted((_stable(v) for v in value), key=value_key)
    if isinstance(value, MappingABC):
        return {k: _stable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stable(v) for v in value]
    # numpy scalars and friends key like the builtin they stand for
    if isinstance(value, numbers.Integral) and not isinstance(value, int):
        return int(value)
    if isinstance(value, numbers.Real) and not isinstance(value, float):
        return float(value)
    return value


def value_key(value: Any) -> str:
    """
    Canonical string key for a raw value.

    Uses canonical Extended JSON so BSON types, nested documents
    and arrays all get a stable key. Sets are keyed by their
    sorted elements, so equal sets share a key in every process.
    Values Extended JSON can't encode fall back to
    "<ClassName>:<repr>".
    """
    try:
        return json_util.dumps(_stable(value), sort_keys=True)
    except (TypeError, ValueError, OverflowError):
        return f"{type(value).__name__}:{value!r}"


class ValueTracker:
    """Occurrence count and distinct-value tracking for one (field, type) pair."""

    def __init__(
        self,
        strategy: Strategy = Strategy.EXACT,
        exact_ceiling: Optional[int] = DEFAULT_EXACT_CEILING,
        sketch_precision: int = DEFAULT_SKETCH_PRECISION,
    ):
        self.strategy = strategy
        self.exact_ceiling = exact_ceiling
        self.sketch_precision = sketch_precision
        self.count: int = 0
        self.degraded: bool = False

        self._values: Optional[Set[str]] = None
        self._sketch: Optional[HyperLogLog] = None
        if strategy is Strategy.EXACT:
            self._values = set()
        else:
            self._sketch = HyperLogLog(p=sketch_precision)

    # ======================================
    # Observation
    # ======================================
    def observe(self, raw_value: Any) -> None:
        self.count += 1
        key = value_key(raw_value)
        if self._values is not None:
            self._values.add(key)
            self._check_ceiling()
        else:
            self._sketch.update(key.encode("utf-8"))

    # ======================================
    # Computed values
    # ======================================
    @property
    def approximate(self) -> bool:
        """True when unique_count() is an estimate."""
        return self._values is None

    def unique_count(self) -> int:
        if self._values is not None:
            return len(self._values)
        # the estimate can overshoot; distinct values never exceed observations
        return min(self.count, int(round(self._sketch.count())))

    def has_duplicates(self) -> bool:
        return self.count > self.unique_count()

    # ======================================
    # Merging
    # ======================================
    def merge(self, other: "ValueTracker") -> "ValueTracker":
        """
        Fold another tracker into this one.

        Raises:
            IncompatibleMerge: If strategies or their parameters differ
        """
        self._check_compatible(other)

        self.count += other.count
        if self._values is not None and other._values is not None:
            self._values |= other._values
            self._check_ceiling()
            return self

        if self._values is not None:
            self._degrade()
        self._sketch.merge(other._sketch if other._sketch is not None else other._build_sketch())
        self.degraded = self.degraded or other.degraded
        return self

    def _check_compatible(self, other: "ValueTracker") -> None:
        if self.strategy is not other.strategy:
            raise IncompatibleMerge(
                f"Cannot merge a {self.strategy.value} tracker with a {other.strategy.value} tracker"
            )
        if self.sketch_precision != other.sketch_precision:
            raise IncompatibleMerge(
                f"Cannot merge sketches of precision {self.sketch_precision} and {other.sketch_precision}"
            )
        if self.exact_ceiling != other.exact_ceiling:
            raise IncompatibleMerge(
                f"Cannot merge exact trackers with ceilings {self.exact_ceiling} and {other.exact_ceiling}"
            )

    def _check_ceiling(self) -> None:
        if self.exact_ceiling is not None and len(self._values) > self.exact_ceiling:
            self._degrade()

    def _build_sketch(self) -> HyperLogLog:
        sketch = HyperLogLog(p=self.sketch_precision)
        for key in self._values:
            sketch.update(key.encode("utf-8"))
        return sketch

    def _degrade(self) -> None:
        self._sketch = self._build_sketch()
        self._values = None
        self.degraded = True

    def copy(self) -> "ValueTracker":
        clone = ValueTracker(self.strategy, self.exact_ceiling, self.sketch_precision)
        clone.count = self.count
        clone.degraded = self.degraded
        if self._values is not None:
            clone._values = set(self._values)
            clone._sketch = None
        else:
            clone._values = None
            # HyperLogLog.update() writes registers in place; never share them
            clone._sketch = HyperLogLog(reg=self._sketch.reg.copy())
        return clone

    def __repr__(self) -> str:
        return (
            f"ValueTracker(strategy={self.strategy.value}, count={self.count}, "
            f"unique={self.unique_count()}, approximate={self.approximate})"
        )

    # ======================================
    # Serialization
    # ======================================
    def to_snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "count": self.count,
            "strategy": self.strategy.value,
            "degraded": self.degraded,
            "ceiling": self.exact_ceiling,
            "precision": self.sketch_precision,
        }
        if self._values is not None:
            data["values"] = sorted(self._values)
        else:
            data["sketch"] = {
                "p": self._sketch.p,
                "registers": [int(r) for r in self._sketch.reg],
            }
        return data

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "ValueTracker":
        """
        Rebuild a tracker from `to_snapshot()` output.

        Raises:
            SnapshotError: If the snapshot is missing fields or inconsistent
        """
        if not isinstance(data, MappingABC):
            raise SnapshotError(f"Value tracker snapshot must be a mapping, got {type(data).__name__}")

        ceiling = data.get("ceiling", DEFAULT_EXACT_CEILING)
        if ceiling is not None and (isinstance(ceiling, bool) or not isinstance(ceiling, int)):
            raise SnapshotError(f"Value tracker ceiling must be an integer or null, got {ceiling!r}")

        try:
            strategy = Strategy.parse(data["strategy"])
            tracker = cls(
                strategy=strategy,
                exact_ceiling=ceiling,
                sketch_precision=int(data.get("precision", DEFAULT_SKETCH_PRECISION)),
            )
            tracker.count = int(data["count"])
            tracker.degraded = bool(data.get("degraded", False))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Invalid value tracker snapshot: {e}") from e

        if "values" in data:
            if strategy is not Strategy.EXACT or tracker.degraded:
                raise SnapshotError("Only non-degraded exact trackers carry a value set")
            values = data["values"]
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise SnapshotError("Exact tracker 'values' must be a list of value keys")
            tracker._values = set(values)
            tracker._sketch = None
        elif "sketch" in data:
            tracker._values = None
            tracker._sketch = cls._sketch_from_snapshot(data["sketch"], tracker.sketch_precision)
        else:
            raise SnapshotError("Value tracker snapshot has neither 'values' nor 'sketch'")

        if tracker.unique_count() > tracker.count:
            raise SnapshotError("Value tracker snapshot has more distinct values than observations")
        return tracker

    @staticmethod
    def _sketch_from_snapshot(data: Mapping[str, Any], precision: int) -> HyperLogLog:
        try:
            p = int(data["p"])
            registers = np.asarray(data["registers"], dtype=np.int8)
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Invalid sketch snapshot: {e}") from e
        if p != precision or registers.size != (1 << p):
            raise SnapshotError(f"Sketch registers don't match precision {precision}")
        return HyperLogLog(reg=registers)


@dataclass(frozen=True)
class TrackerSettings:
    """
    Per-field duplicate-tracking policy.

    The strategy for a field is fixed by these settings before
    ingestion begins; aggregators built with different settings
    for the same field can't be merged.
    """
    default_strategy: Strategy = Strategy.EXACT
    overrides: Mapping[str, Strategy] = field(default_factory=dict)
    exact_ceiling: Optional[int] = DEFAULT_EXACT_CEILING
    sketch_precision: int = DEFAULT_SKETCH_PRECISION

    def __post_init__(self):
        if not 4 <= self.sketch_precision <= 16:
            raise ValueError(f"sketch_precision must be in [4, 16], got {self.sketch_precision}")
        if self.exact_ceiling is not None and self.exact_ceiling < 1:
            raise ValueError(f"exact_ceiling must be positive, got {self.exact_ceiling}")

    def strategy_for(self, field_name: str) -> Strategy:
        return self.overrides.get(field_name, self.default_strategy)

    def new_tracker(self, field_name: str) -> ValueTracker:
        return ValueTracker(
            strategy=self.strategy_for(field_name),
            exact_ceiling=self.exact_ceiling,
            sketch_precision=self.sketch_precision,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_strategy": self.default_strategy.value,
            "overrides": {name: s.value for name, s in sorted(self.overrides.items())},
            "exact_ceiling": self.exact_ceiling,
            "sketch_precision": self.sketch_precision,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrackerSettings":
        return cls(
            default_strategy=Strategy.parse(data.get("default_strategy", "exact")),
            overrides={
                name: Strategy.parse(s) for name, s in data.get("overrides", {}).items()
            },
            exact_ceiling=data.get("exact_ceiling", DEFAULT_EXACT_CEILING),
            sketch_precision=int(data.get("sketch_precision", DEFAULT_SKETCH_PRECISION)),
        )
