# ==============================================
# FieldAggregator
# ==============================================
#
# PURPOSE:
#   Mutable accumulator for one field name across a corpus.
#   Holds how many documents contained the field and one
#   ValueTracker per type tag seen for it.
#
# CLASS: FieldAggregator
# ----------------------
#   Attributes:
#   -----------
#   - name: str                       → Field name (interned)
#   - count: int                      → Documents containing the field
#   - types: dict[str, ValueTracker]  → {"Int64": tracker, "String": tracker}
#
#   Methods:
#   --------
#   - observe(value) -> str
#       Classify, bump count, route to the tracker for that tag.
#
#   - merge(other) -> FieldAggregator
#       Sum counts, merge trackers tag by tag.
#
#   - has_duplicates() -> bool
#       OR over the per-type trackers. "1" and 1 live in
#       different trackers, so they never count as duplicates.
#
# ==============================================

import sys
from typing import Any, Dict, Iterator, Optional, Tuple

from docschema.classification.type_classifier import TypeClassifier
from docschema.errors import IncompatibleMerge
from .value_tracker import TrackerSettings, ValueTracker


class FieldAggregator:
    """Per-field counts and per-type value trackers."""

    def __init__(
        self,
        name: str,
        classifier: Optional[TypeClassifier] = None,
        settings: Optional[TrackerSettings] = None,
    ):
        self.name = sys.intern(name)
        self.classifier = classifier or TypeClassifier()
        self.settings = settings or TrackerSettings()
        self.count: int = 0
        self.types: Dict[str, ValueTracker] = {}

    def observe(self, value: Any) -> str:
        """
        Record one value of this field.

        Args:
            value: The raw field value from a document

        Returns:
            The type tag the value was classified as
        """
        tag = self.classifier.classify(value)
        self.count += 1

        tracker = self.types.get(tag)
        if tracker is None:
            tracker = self.settings.new_tracker(self.name)
            self.types[sys.intern(tag)] = tracker
        tracker.observe(value)
        return tag

    def merge(self, other: "FieldAggregator") -> "FieldAggregator":
        """
        Fold another aggregator for the same field into this one.

        Raises:
            IncompatibleMerge: If the field names differ or a tracker pair is incompatible
        """
        if other.name != self.name:
            raise IncompatibleMerge(f"Cannot merge field '{other.name}' into field '{self.name}'")

        # validate every pair first so a failed merge leaves this side untouched
        for tag, theirs in other.types.items():
            ours = self.types.get(tag)
            if ours is not None:
                ours._check_compatible(theirs)

        self.count += other.count
        for tag, theirs in other.types.items():
            ours = self.types.get(tag)
            if ours is None:
                self.types[tag] = theirs.copy()
            else:
                ours.merge(theirs)
        return self

    def has_duplicates(self) -> bool:
        return any(tracker.has_duplicates() for tracker in self.types.values())

    @property
    def approximate(self) -> bool:
        return any(tracker.approximate for tracker in self.types.values())

    def trackers(self) -> Iterator[Tuple[str, ValueTracker]]:
        return iter(self.types.items())

    def copy(self) -> "FieldAggregator":
        clone = FieldAggregator(self.name, self.classifier, self.settings)
        clone.count = self.count
        clone.types = {tag: tracker.copy() for tag, tracker in self.types.items()}
        return clone

    def __repr__(self) -> str:
        return f"FieldAggregator(name={self.name!r}, count={self.count}, types={sorted(self.types)})"
