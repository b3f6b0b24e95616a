# ==============================================
# Schema (Data Classes)
# ==============================================
#
# PURPOSE:
#   Immutable OUTPUT of the aggregation engine. Built only by
#   the finalizer; nothing in here can be mutated afterwards.
#
# CLASSES:
# --------
# - Type (frozen dataclass)
#     One value type observed within one field.
#     - name: str             → Type tag, e.g. "Int64"
#     - count: int            → Observations of this type
#     - probability: float    → count / field.count
#     - unique: int           → Distinct values of this type
#     - approximate: bool     → unique is an estimate
#
# - Field (frozen dataclass)
#     - name, count, probability (count / schema.count)
#     - has_duplicates: bool  → Some value recurred within one type
#     - types: tuple[Type]    → Descending count, ties by name
#     - approximate: bool
#
# - Schema (frozen dataclass)
#     - count: int            → Documents analysed
#     - fields: tuple[Field]  → Ascending by name
#
#   Each has to_dict() / from_dict(). The "approximate" key is
#   only written when it is true.
#
# ==============================================

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple


@dataclass(frozen=True)
class Type:
    """A value type encountered in a field."""

    name: str
    count: int
    probability: float
    unique: int
    approximate: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "count": self.count,
            "probability": self.probability,
            "unique": self.unique,
        }
        if self.approximate:
            data["approximate"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Type":
        return cls(
            name=data["name"],
            count=data["count"],
            probability=data["probability"],
            unique=data["unique"],
            approximate=data.get("approximate", False),
        )


@dataclass(frozen=True)
class Field:
    """Analysis of one field across the corpus."""

    name: str
    count: int
    probability: float
    has_duplicates: bool
    types: Tuple[Type, ...] = ()
    approximate: bool = False

    def get_type(self, name: str) -> Optional[Type]:
        for t in self.types:
            if t.name == name:
                return t
        return None

    @property
    def type_names(self) -> Tuple[str, ...]:
        return tuple(t.name for t in self.types)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "count": self.count,
            "probability": self.probability,
            "has_duplicates": self.has_duplicates,
            "types": [t.to_dict() for t in self.types],
        }
        if self.approximate:
            data["approximate"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Field":
        return cls(
            name=data["name"],
            count=data["count"],
            probability=data["probability"],
            has_duplicates=data["has_duplicates"],
            types=tuple(Type.from_dict(t) for t in data.get("types", [])),
            approximate=data.get("approximate", False),
        )


@dataclass(frozen=True)
class Schema:
    """
    The inferred schema of a corpus.

    Schemas are immutable; to add documents, keep observing into
    the aggregator and finalize again.
    """

    count: int
    fields: Tuple[Field, ...] = ()

    def get_field(self, name: str) -> Optional[Field]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def __iter__(self) -> Iterator[Field]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Schema":
        return cls(
            count=data["count"],
            fields=tuple(Field.from_dict(f) for f in data.get("fields", [])),
        )
