# ==============================================
# CorpusAggregator
# ==============================================
#
# PURPOSE:
#   Top-level accumulator for one shard of a corpus: a running
#   document count plus one FieldAggregator per field name.
#   This is the unit of mutation during ingestion; each shard
#   worker owns exactly one and never shares it.
#
# CLASS: CorpusAggregator
# -----------------------
#   Constructor:
#   ------------
#   - __init__(classifier=None, settings=None)
#
#   Attributes:
#   -----------
#   - document_count: int                  → Documents observed
#   - fields: dict[str, FieldAggregator]   → Not ordered
#
#   Methods:
#   --------
#   - observe_document(document, index=None) -> None
#       Validate the document, then route every (name, value)
#       pair to its FieldAggregator. O(fields in the document);
#       fields absent from the document are never touched.
#
#   - merge(other) -> CorpusAggregator
#       Sum document counts, union the field maps. Associative
#       and commutative, so shards can be reduced in any order.
#
#   - to_snapshot() / from_snapshot()
#       Partial-aggregate exchange format for cross-process merges.
#
#   - copy() / reset()
#
# ==============================================

from collections.abc import Mapping as MappingABC
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from docschema.classification.type_classifier import TypeClassifier
from docschema.errors import IncompatibleMerge, MalformedDocument, SnapshotError
from .field_aggregator import FieldAggregator
from .value_tracker import TrackerSettings, ValueTracker


SNAPSHOT_FORMAT = "docschema.partial"
SNAPSHOT_VERSION = 1


class CorpusAggregator:
    """
    Accumulates per-field, per-type statistics for a stream of documents.

    Not thread-safe: one aggregator per worker, combined afterwards
    with merge().
    """

    def __init__(
        self,
        classifier: Optional[TypeClassifier] = None,
        settings: Optional[TrackerSettings] = None,
    ):
        self.classifier = classifier or TypeClassifier()
        self.settings = settings or TrackerSettings()
        self.document_count: int = 0
        self.fields: Dict[str, FieldAggregator] = {}

    @property
    def signature(self) -> str:
        return self.classifier.signature

    # ======================================
    # Ingestion
    # ======================================
    def observe_document(self, document: Any, index: Optional[int] = None) -> None:
        """
        Observe one document.

        Args:
            document: A mapping of field name → value
            index: Position of the document in its stream (for error reports)

        Raises:
            MalformedDocument: If the document isn't a mapping with string keys.
                Nothing is recorded for a rejected document.
        """
        if not isinstance(document, MappingABC):
            raise MalformedDocument(
                f"expected a mapping of field names to values, got {type(document).__name__}",
                index=index,
            )
        for name in document:
            if not isinstance(name, str):
                raise MalformedDocument(f"field name {name!r} is not a string", index=index)

        self.document_count += 1
        for name, value in document.items():
            aggregator = self.fields.get(name)
            if aggregator is None:
                aggregator = FieldAggregator(name, self.classifier, self.settings)
                self.fields[aggregator.name] = aggregator
            aggregator.observe(value)

    def observe_all(self, documents: Iterable[Any]) -> None:
        """Observe documents in order; the first malformed one raises."""
        for index, document in enumerate(documents):
            self.observe_document(document, index=index)

    # ======================================
    # Merging
    # ======================================
    def merge(self, other: "CorpusAggregator") -> "CorpusAggregator":
        """
        Fold another partial aggregate into this one (in place).

        `other` is left untouched and nothing of it is aliased.

        Raises:
            IncompatibleMerge: If classification rules or tracker settings differ
        """
        self.check_compatible(other)

        self.document_count += other.document_count
        for name, theirs in other.fields.items():
            ours = self.fields.get(name)
            if ours is None:
                self.fields[name] = theirs.copy()
            else:
                ours.merge(theirs)
        return self

    def check_compatible(self, other: "CorpusAggregator") -> None:
        if self.signature != other.signature:
            raise IncompatibleMerge(
                f"Type classification rules differ: '{self.signature}' vs '{other.signature}'"
            )
        if self.settings != other.settings:
            raise IncompatibleMerge(
                f"Tracker settings differ: {self.settings.to_dict()} vs {other.settings.to_dict()}"
            )
        for name, theirs in other.fields.items():
            ours = self.fields.get(name)
            if ours is None:
                continue
            for tag, tracker in theirs.types.items():
                if tag in ours.types:
                    ours.types[tag]._check_compatible(tracker)

    # ======================================
    # Inspection
    # ======================================
    def field_names(self) -> List[str]:
        return sorted(self.fields)

    def degraded_trackers(self) -> Iterator[Tuple[str, str, ValueTracker]]:
        """Yield (field name, type tag, tracker) for trackers that hit the exact ceiling."""
        for name in sorted(self.fields):
            for tag, tracker in sorted(self.fields[name].types.items()):
                if tracker.degraded:
                    yield name, tag, tracker

    def is_empty(self) -> bool:
        return self.document_count == 0 and not self.fields

    def copy(self) -> "CorpusAggregator":
        clone = CorpusAggregator(self.classifier, self.settings)
        clone.document_count = self.document_count
        clone.fields = {name: agg.copy() for name, agg in self.fields.items()}
        return clone

    def reset(self) -> None:
        """Clear all accumulated state (for the next batch)."""
        self.document_count = 0
        self.fields = {}

    def __repr__(self) -> str:
        return f"CorpusAggregator(document_count={self.document_count}, fields={len(self.fields)})"

    # ======================================
    # Serialization
    # ======================================
    def to_snapshot(self) -> Dict[str, Any]:
        """
        Serialize to the partial-aggregate exchange format.

        The result only contains JSON types and is deterministic
        for equal content.
        """
        return {
            "format": SNAPSHOT_FORMAT,
            "version": SNAPSHOT_VERSION,
            "classifier": self.signature,
            "settings": self.settings.to_dict(),
            "document_count": self.document_count,
            "fields": {
                name: {
                    "count": agg.count,
                    "types": {tag: agg.types[tag].to_snapshot() for tag in sorted(agg.types)},
                }
                for name, agg in sorted(self.fields.items())
            },
        }

    @classmethod
    def from_snapshot(
        cls,
        data: Mapping[str, Any],
        classifier: Optional[TypeClassifier] = None,
    ) -> "CorpusAggregator":
        """
        Rebuild a partial aggregate from `to_snapshot()` output.

        Args:
            data: The snapshot dictionary
            classifier: Classifier to continue with; must match the snapshot's rules

        Raises:
            SnapshotError: If the snapshot is malformed
            IncompatibleMerge: If the snapshot was built with other classification rules
        """
        if not isinstance(data, MappingABC):
            raise SnapshotError(f"Snapshot must be a mapping, got {type(data).__name__}")
        if data.get("format") != SNAPSHOT_FORMAT:
            raise SnapshotError(f"Not a partial-aggregate snapshot (format={data.get('format')!r})")
        if data.get("version") != SNAPSHOT_VERSION:
            raise SnapshotError(f"Unsupported snapshot version {data.get('version')!r}")

        classifier = classifier or TypeClassifier()
        if data.get("classifier") != classifier.signature:
            raise IncompatibleMerge(
                f"Snapshot was built with rules '{data.get('classifier')}', "
                f"not '{classifier.signature}'"
            )

        try:
            settings = TrackerSettings.from_dict(data.get("settings", {}))
            aggregator = cls(classifier, settings)
            aggregator.document_count = int(data["document_count"])
            fields = data["fields"]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SnapshotError(f"Invalid partial-aggregate snapshot: {e}") from e
        if not isinstance(fields, MappingABC):
            raise SnapshotError(f"Snapshot 'fields' must be a mapping, got {type(fields).__name__}")

        for name, field_data in fields.items():
            if not isinstance(name, str):
                raise SnapshotError(f"Field name {name!r} is not a string")
            if not isinstance(field_data, MappingABC) or not isinstance(field_data.get("types"), MappingABC):
                raise SnapshotError(f"Invalid snapshot for field '{name}': expected a count and a types mapping")

            field_aggregator = FieldAggregator(name, classifier, settings)
            try:
                field_aggregator.count = int(field_data["count"])
            except (KeyError, TypeError, ValueError) as e:
                raise SnapshotError(f"Invalid snapshot for field '{name}': {e}") from e
            for tag, tracker_data in field_data["types"].items():
                if not isinstance(tag, str):
                    raise SnapshotError(f"Type tag {tag!r} of field '{name}' is not a string")
                field_aggregator.types[tag] = ValueTracker.from_snapshot(tracker_data)

            type_total = sum(t.count for t in field_aggregator.types.values())
            if type_total != field_aggregator.count:
                raise SnapshotError(
                    f"Field '{name}' has count {field_aggregator.count} "
                    f"but its types add up to {type_total}"
                )
            if field_aggregator.count > aggregator.document_count:
                raise SnapshotError(
                    f"Field '{name}' appears in more documents than the snapshot holds"
                )
            aggregator.fields[field_aggregator.name] = field_aggregator

        return aggregator
