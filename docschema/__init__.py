# ==============================================
# docschema — Statistical Schema Inference
# ==============================================
#
# Package Structure:
#
# docschema/
# ├── classification/       # Value → type tag
# ├── analysis/             # Aggregation engine: trackers, aggregators,
# │                         #   merge, finalize, Schema data classes
# ├── persistence/          # Partial-aggregate / schema snapshots on disk
# ├── sources/              # MongoDB and HTTP document suppliers
# ├── config.py             # Configuration management
# ├── errors.py             # Error and warning types
# ├── ingest_and_analyse.py # SchemaAnalyser orchestrator
# └── cli.py                # Command line entry point
#
# ==============================================

__version__ = "0.1.0"

from docschema.analysis import (
    CorpusAggregator,
    Field,
    FieldAggregator,
    Schema,
    Strategy,
    TrackerSettings,
    Type,
    ValueTracker,
    finalize,
    merge,
    merge_all,
)
from docschema.classification import TypeClassifier, classify
from docschema.errors import (
    CardinalityOverflow,
    DocumentError,
    IncompatibleMerge,
    MalformedDocument,
    SchemaAnalysisError,
    SnapshotError,
)
from docschema.ingest_and_analyse import AnalysisResult, SchemaAnalyser

__all__ = [
    "AnalysisResult",
    "CardinalityOverflow",
    "CorpusAggregator",
    "DocumentError",
    "Field",
    "FieldAggregator",
    "IncompatibleMerge",
    "MalformedDocument",
    "Schema",
    "SchemaAnalyser",
    "SchemaAnalysisError",
    "SnapshotError",
    "Strategy",
    "TrackerSettings",
    "Type",
    "TypeClassifier",
    "ValueTracker",
    "classify",
    "finalize",
    "merge",
    "merge_all",
]
