# ==============================================
# ANALYSIS — the aggregation engine
# ==============================================
#
# Accumulates per-field, per-type statistics over a (possibly
# sharded) document stream and finalizes them into a Schema.
#
#   documents → TypeClassifier → FieldAggregator.observe
#             → CorpusAggregator (one per shard)
#             → merger.merge_all (tree reduce)
#             → finalizer.finalize → Schema
#
# Modules:
# --------
# - value_tracker.py      → Count + distinct values for one (field, type)
# - field_aggregator.py   → Per-field counts, one tracker per type tag
# - corpus_aggregator.py  → Document count + field map, snapshots
# - merger.py             → Pairwise / tree merge of partial aggregates
# - finalizer.py          → Aggregator → immutable Schema
# - schema.py             → Type, Field, Schema data classes
#
# ==============================================

from .value_tracker import Strategy, TrackerSettings, ValueTracker
from .field_aggregator import FieldAggregator
from .corpus_aggregator import CorpusAggregator
from .merger import merge, merge_all
from .finalizer import finalize
from .schema import Field, Schema, Type

__all__ = [
    "Strategy",
    "TrackerSettings",
    "ValueTracker",
    "FieldAggregator",
    "CorpusAggregator",
    "merge",
    "merge_all",
    "finalize",
    "Field",
    "Schema",
    "Type",
]
