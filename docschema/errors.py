# ==============================================
# Errors
# ==============================================
#
# PURPOSE:
#   Exception and warning types raised by the aggregation engine
#   and the analysis session.
#
# TAXONOMY:
# ---------
# - SchemaAnalysisError        → base class for everything below
# - MalformedDocument          → one document is not a field→value mapping
#                                (collected per document, not fatal)
# - IncompatibleMerge          → two partials can't be combined
#                                (fatal for that merge call)
# - SnapshotError              → a partial-aggregate snapshot is malformed
# - CardinalityOverflow        → warning: an exact tracker hit its ceiling
#                                and degraded to an estimate
#
# ==============================================

from dataclasses import dataclass
from typing import Any, Dict, Optional


class SchemaAnalysisError(Exception):
    """Base class for all schema analysis errors."""


class MalformedDocument(SchemaAnalysisError):
    """
    A document can't be interpreted as a mapping of field name to value.

    Args:
        reason: Human-readable description of what is wrong
        index: Position of the document in its shard/stream, if known
        shard: Index of the shard the document came from, if known
    """

    def __init__(self, reason: str, index: Optional[int] = None, shard: Optional[int] = None):
        self.reason = reason
        self.index = index
        self.shard = shard
        location = ""
        if index is not None:
            location = f"document {index}"
            if shard is not None:
                location += f" of shard {shard}"
            location += ": "
        super().__init__(f"{location}{reason}")


class IncompatibleMerge(SchemaAnalysisError):
    """Two partial aggregates were built with incompatible rules or strategies."""


class SnapshotError(SchemaAnalysisError):
    """A partial-aggregate snapshot could not be decoded."""


class CardinalityOverflow(UserWarning):
    """
    An exact value tracker exceeded its distinct-value ceiling.

    The tracker keeps counting but its unique/has_duplicates figures
    are estimates from then on.
    """

    def __init__(self, field_name: str, type_name: str, ceiling: int):
        self.field_name = field_name
        self.type_name = type_name
        self.ceiling = ceiling
        super().__init__(
            f"field '{field_name}' ({type_name}) exceeded {ceiling} distinct values; "
            f"uniqueness is now estimated"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field_name,
            "type": self.type_name,
            "ceiling": self.ceiling,
            "message": str(self),
        }


@dataclass
class DocumentError:
    """A per-document failure reported alongside the schema."""

    shard: int
    index: int
    reason: str

    @classmethod
    def from_exception(cls, error: MalformedDocument) -> "DocumentError":
        return cls(
            shard=error.shard if error.shard is not None else 0,
            index=error.index if error.index is not None else -1,
            reason=error.reason,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"shard": self.shard, "index": self.index, "reason": self.reason}
