# ==============================================
# Finalizer
# ==============================================
#
# PURPOSE:
#   Turn a completed CorpusAggregator into an immutable,
#   deterministically ordered Schema.
#
#   - field.probability = field.count / document_count (0 if empty)
#   - type.probability  = type.count / field.count
#   - type.unique       = tracker.unique_count()
#   - types sorted by count descending, then name ascending
#   - fields sorted by name ascending
#
#   Pure: the aggregator is only read, never mutated, so
#   finalizing twice gives equal schemas.
#
# ==============================================

from typing import List

from .corpus_aggregator import CorpusAggregator
from .field_aggregator import FieldAggregator
from .schema import Field, Schema, Type


def _ratio(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _type_order(t: Type):
    return (-t.count, t.name)


def finalize_field(aggregator: FieldAggregator, document_count: int) -> Field:
    types: List[Type] = []
    for tag, tracker in aggregator.types.items():
        types.append(Type(
            name=tag,
            count=tracker.count,
            probability=_ratio(tracker.count, aggregator.count),
            unique=tracker.unique_count(),
            approximate=tracker.approximate,
        ))
    types.sort(key=_type_order)

    return Field(
        name=aggregator.name,
        count=aggregator.count,
        probability=_ratio(aggregator.count, document_count),
        has_duplicates=aggregator.has_duplicates(),
        types=tuple(types),
        approximate=any(t.approximate for t in types),
    )


def finalize(aggregator: CorpusAggregator) -> Schema:
    """
    Produce the Schema for everything observed so far.

    Args:
        aggregator: A fully merged aggregator

    Returns:
        An immutable Schema
    """
    document_count = aggregator.document_count
    fields = [
        finalize_field(aggregator.fields[name], document_count)
        for name in sorted(aggregator.fields)
    ]
    return Schema(count=document_count, fields=tuple(fields))
