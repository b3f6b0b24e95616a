# ==============================================
# Tests for ValueTracker and TrackerSettings
# ==============================================

import os
import sys
import json
import subprocess
from pathlib import Path

import numpy as np
import pytest

from docschema.analysis.value_tracker import (
    Strategy,
    TrackerSettings,
    ValueTracker,
    value_key,
)
from docschema.errors import IncompatibleMerge, SnapshotError


class TestValueKey:

    def test_equal_documents_share_a_key_regardless_of_key_order(self):
        assert value_key({"a": 1, "b": 2}) == value_key({"b": 2, "a": 1})

    def test_strings_and_numbers_differ(self):
        assert value_key("1") != value_key(1)

    def test_sets_key_by_sorted_elements(self):
        assert value_key({"gamma", "alpha", "beta"}) == value_key(["alpha", "beta", "gamma"])
        assert value_key(frozenset({3, 1, 2})) == value_key([1, 2, 3])
        assert value_key({"tags": {"b", "a"}}) == value_key({"tags": ["a", "b"]})

    def test_set_keys_are_stable_across_hash_seeds(self):
        script = (
            "from docschema.analysis.value_tracker import value_key; "
            "print(value_key({'alpha', 'beta', 'gamma', 'delta', 'epsilon'}))"
        )
        root = str(Path(__file__).resolve().parent.parent)
        keys = set()
        for seed in ("1", "2", "3", "4", "5"):
            env = dict(os.environ, PYTHONHASHSEED=seed)
            env["PYTHONPATH"] = os.pathsep.join(filter(None, [root, env.get("PYTHONPATH")]))
            output = subprocess.run(
                [sys.executable, "-c", script],
                env=env, capture_output=True, text=True, check=True,
            )
            keys.add(output.stdout.strip())

        assert len(keys) == 1

    def test_numpy_scalars_key_like_builtins(self):
        assert value_key(np.int64(5)) == value_key(5)
        assert value_key(np.float32(1.5)) == value_key(1.5)

    def test_unencodable_values_fall_back_to_repr(self):
        class Widget:
            def __repr__(self):
                return "Widget()"

        assert value_key(Widget()) == "Widget:Widget()"


class TestExactTracker:

    def test_counts_and_uniques(self):
        tracker = ValueTracker()
        for value in [1, 2, 2, 3]:
            tracker.observe(value)

        assert tracker.count == 4
        assert tracker.unique_count() == 3
        assert tracker.has_duplicates() is True
        assert tracker.approximate is False

    def test_no_duplicates(self):
        tracker = ValueTracker()
        for value in ["a", "b", "c"]:
            tracker.observe(value)
        assert tracker.has_duplicates() is False

    def test_containers_take_part_in_duplicate_tracking(self):
        tracker = ValueTracker()
        tracker.observe([1, 2])
        tracker.observe([1, 2])
        tracker.observe({"x": 1})
        assert tracker.unique_count() == 2

    def test_merge_unions_values(self):
        left, right = ValueTracker(), ValueTracker()
        for value in [1, 2]:
            left.observe(value)
        for value in [2, 3]:
            right.observe(value)

        left.merge(right)

        assert left.count == 4
        assert left.unique_count() == 3
        assert left.has_duplicates() is True
        # the other side is untouched
        assert right.count == 2

    def test_copy_is_independent(self):
        tracker = ValueTracker()
        tracker.observe(1)
        clone = tracker.copy()
        clone.observe(2)
        assert tracker.count == 1
        assert tracker.unique_count() == 1
        assert clone.unique_count() == 2


class TestCardinalityCeiling:

    def test_degrades_past_ceiling(self):
        tracker = ValueTracker(exact_ceiling=3)
        for value in range(5):
            tracker.observe(value)

        assert tracker.degraded is True
        assert tracker.approximate is True
        assert tracker.count == 5
        assert abs(tracker.unique_count() - 5) <= 1

    def test_stays_exact_at_ceiling(self):
        tracker = ValueTracker(exact_ceiling=3)
        for value in range(3):
            tracker.observe(value)
        assert tracker.degraded is False

    def test_merge_can_push_past_ceiling(self):
        left, right = ValueTracker(exact_ceiling=3), ValueTracker(exact_ceiling=3)
        left.observe(1)
        left.observe(2)
        right.observe(3)
        right.observe(4)

        left.merge(right)

        assert left.degraded is True
        assert left.count == 4

    def test_exact_merges_into_degraded(self):
        degraded = ValueTracker(exact_ceiling=2)
        for value in range(4):
            degraded.observe(value)
        exact = ValueTracker(exact_ceiling=2)
        exact.observe(0)

        exact.merge(degraded)

        assert exact.degraded is True
        assert exact.count == 5
        assert exact.has_duplicates() is True


class TestApproximateTracker:

    def test_detects_repeated_values(self):
        tracker = ValueTracker(Strategy.APPROXIMATE)
        for _ in range(3):
            tracker.observe("same")

        assert tracker.approximate is True
        assert tracker.unique_count() == 1
        assert tracker.has_duplicates() is True

    def test_estimate_is_close(self):
        tracker = ValueTracker(Strategy.APPROXIMATE)
        for value in range(5000):
            tracker.observe(value)

        assert abs(tracker.unique_count() - 5000) <= 5000 * 0.05

    def test_estimate_never_exceeds_count(self):
        tracker = ValueTracker(Strategy.APPROXIMATE)
        for value in range(10):
            tracker.observe(value)
        assert tracker.unique_count() <= tracker.count

    def test_merge(self):
        left = ValueTracker(Strategy.APPROXIMATE)
        right = ValueTracker(Strategy.APPROXIMATE)
        for value in range(1000):
            left.observe(value)
        for value in range(500, 1500):
            right.observe(value)

        left.merge(right)

        assert left.count == 2000
        assert abs(left.unique_count() - 1500) <= 1500 * 0.05


class TestIncompatibleMerges:

    def test_exact_with_approximate(self):
        with pytest.raises(IncompatibleMerge):
            ValueTracker(Strategy.EXACT).merge(ValueTracker(Strategy.APPROXIMATE))

    def test_different_precisions(self):
        left = ValueTracker(Strategy.APPROXIMATE, sketch_precision=12)
        right = ValueTracker(Strategy.APPROXIMATE, sketch_precision=14)
        with pytest.raises(IncompatibleMerge):
            left.merge(right)

    def test_different_ceilings(self):
        with pytest.raises(IncompatibleMerge):
            ValueTracker(exact_ceiling=10).merge(ValueTracker(exact_ceiling=20))


class TestSnapshots:

    def test_exact_snapshot(self):
        tracker = ValueTracker()
        for value in ["b", "a", "a"]:
            tracker.observe(value)

        data = json.loads(json.dumps(tracker.to_snapshot()))
        restored = ValueTracker.from_snapshot(data)

        assert data["values"] == sorted(data["values"])
        assert restored.count == 3
        assert restored.unique_count() == 2
        assert restored.strategy is Strategy.EXACT

    def test_sketch_snapshot(self):
        tracker = ValueTracker(Strategy.APPROXIMATE, sketch_precision=10)
        for value in range(200):
            tracker.observe(value)

        restored = ValueTracker.from_snapshot(json.loads(json.dumps(tracker.to_snapshot())))

        assert restored.unique_count() == tracker.unique_count()
        assert restored.sketch_precision == 10

    def test_missing_payload(self):
        with pytest.raises(SnapshotError):
            ValueTracker.from_snapshot({"count": 1, "strategy": "exact"})

    def test_bad_strategy(self):
        with pytest.raises(SnapshotError):
            ValueTracker.from_snapshot({"count": 1, "strategy": "fuzzy", "values": []})

    def test_more_uniques_than_observations(self):
        with pytest.raises(SnapshotError):
            ValueTracker.from_snapshot({"count": 1, "strategy": "exact", "values": ["1", "2"]})

    def test_values_must_be_a_list_of_keys(self):
        for values in ([["unhashable"]], [{"a": 1}], "abc", [1]):
            with pytest.raises(SnapshotError):
                ValueTracker.from_snapshot({"count": 3, "strategy": "exact", "values": values})

    @pytest.mark.parametrize("ceiling", ["10", 2.5, True, [10]])
    def test_ceiling_must_be_an_integer(self, ceiling):
        data = {"count": 1, "strategy": "exact", "ceiling": ceiling, "values": ["1"]}
        with pytest.raises(SnapshotError):
            ValueTracker.from_snapshot(data)

    def test_no_ceiling_is_allowed(self):
        data = {"count": 1, "strategy": "exact", "ceiling": None, "values": ["1"]}
        assert ValueTracker.from_snapshot(data).exact_ceiling is None

    def test_snapshot_must_be_a_mapping(self):
        with pytest.raises(SnapshotError):
            ValueTracker.from_snapshot(["exact", 1])

    def test_register_size_must_match_precision(self):
        data = {
            "count": 1,
            "strategy": "approximate",
            "precision": 10,
            "sketch": {"p": 10, "registers": [0] * 16},
        }
        with pytest.raises(SnapshotError):
            ValueTracker.from_snapshot(data)


class TestTrackerSettings:

    def test_per_field_overrides(self):
        settings = TrackerSettings(overrides={"_id": Strategy.APPROXIMATE})
        assert settings.strategy_for("_id") is Strategy.APPROXIMATE
        assert settings.strategy_for("name") is Strategy.EXACT
        assert settings.new_tracker("_id").approximate is True

    def test_validates_precision(self):
        with pytest.raises(ValueError):
            TrackerSettings(sketch_precision=20)

    def test_validates_ceiling(self):
        with pytest.raises(ValueError):
            TrackerSettings(exact_ceiling=0)

    def test_dict_round_trip(self):
        settings = TrackerSettings(
            default_strategy=Strategy.APPROXIMATE,
            overrides={"name": Strategy.EXACT},
            exact_ceiling=50,
            sketch_precision=12,
        )
        assert TrackerSettings.from_dict(settings.to_dict()) == settings

    def test_strategy_parse(self):
        assert Strategy.parse("Exact") is Strategy.EXACT
        assert Strategy.parse(Strategy.APPROXIMATE) is Strategy.APPROXIMATE
        with pytest.raises(ValueError):
            Strategy.parse("fuzzy")
