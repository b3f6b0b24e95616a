# ==============================================
# Merger
# ==============================================
#
# PURPOSE:
#   Combine partial aggregates built from different shards.
#   CorpusAggregator.merge is associative and commutative, so
#   partials can be reduced pairwise in any tree shape.
#
# FUNCTIONS:
# ----------
# - merge(left, right) -> CorpusAggregator
#     New aggregator holding both; inputs are not modified.
#
# - merge_all(aggregators, executor=None) -> CorpusAggregator
#     Balanced tree reduction. With an executor each level's
#     pair merges run concurrently.
#
# ==============================================

from concurrent.futures import Executor
from typing import Iterable, List, Optional

from docschema.classification.type_classifier import TypeClassifier
from .corpus_aggregator import CorpusAggregator
from .value_tracker import TrackerSettings


def merge(left: CorpusAggregator, right: CorpusAggregator) -> CorpusAggregator:
    """
    Merge two partial aggregates into a new one.

    Raises:
        IncompatibleMerge: If the partials can't be combined
    """
    left.check_compatible(right)
    return left.copy().merge(right)


def merge_all(
    aggregators: Iterable[CorpusAggregator],
    executor: Optional[Executor] = None,
    classifier: Optional[TypeClassifier] = None,
    settings: Optional[TrackerSettings] = None,
) -> CorpusAggregator:
    """
    Reduce any number of partial aggregates to one.

    Args:
        aggregators: Partials to combine (left untouched)
        executor: Optional executor to run each level's merges on
        classifier: Rules for the empty result when there is nothing to merge
        settings: Tracker settings for the empty result when there is nothing to merge

    Returns:
        A new aggregator holding everything

    Raises:
        IncompatibleMerge: If any two partials can't be combined
    """
    level: List[CorpusAggregator] = list(aggregators)
    if not level:
        return CorpusAggregator(classifier, settings)
    if len(level) == 1:
        return level[0].copy()

    while len(level) > 1:
        pairs = [(level[i], level[i + 1]) for i in range(0, len(level) - 1, 2)]
        leftover = level[-1] if len(level) % 2 else None

        if executor is not None:
            futures = [executor.submit(merge, a, b) for a, b in pairs]
            merged = [future.result() for future in futures]
        else:
            merged = [merge(a, b) for a, b in pairs]

        if leftover is not None:
            merged.append(leftover)
        level = merged

    return level[0]
