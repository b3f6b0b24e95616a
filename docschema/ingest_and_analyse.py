# ==============================================
# SchemaAnalyser — Analysis Session Orchestrator
# ==============================================
#
# PURPOSE:
#   This is the MAIN CLASS users interact with. It wires the
#   classifier, the aggregation engine and the finalizer into
#   one analysis session.
#
# HOW IT CONNECTS THE PIECES:
#
#   ┌──────────────────────────────────────────────────────────┐
#   │                     SchemaAnalyser                       │
#   │                                                          │
#   │   documents ──► partition into N shards                  │
#   │                   │        │        │                    │
#   │                   ▼        ▼        ▼     (thread pool)  │
#   │           CorpusAggregator per shard                     │
#   │           (TypeClassifier → FieldAggregator → tracker)   │
#   │                   │        │        │                    │
#   │                   └────────┼────────┘                    │
#   │                            ▼                             │
#   │                  merger.merge_all (tree)                 │
#   │                            ▼                             │
#   │                  finalizer.finalize → Schema             │
#   │                            ▼                             │
#   │     AnalysisResult(schema, errors, warnings)             │
#   └──────────────────────────────────────────────────────────┘
#
# CLASS: SchemaAnalyser
# ---------------------
#
#   Constructor:
#   ------------
#   - __init__(config: AppConfig | None = None, classifier: TypeClassifier | None = None)
#
#   Batch API (fan-out / fan-in):
#   -----------------------------
#   - analyse(documents) -> AnalysisResult
#   - analyse_shards(shards) -> AnalysisResult
#   - analyse_json(text) -> AnalysisResult
#
#   Incremental API (single aggregator kept by the session):
#   --------------------------------------------------------
#   - ingest(document) / ingest_batch(documents)
#   - merge_partial(partial)     → partial from another process
#   - partial_snapshot() -> dict
#   - finalize() -> AnalysisResult
#   - reset()
#
#   Control / inspection:
#   ---------------------
#   - cancel()       → stop running shard workers between documents
#   - get_status() -> dict
#
#   Per-document errors never abort a run (unless fail_fast is
#   configured); they come back in AnalysisResult.errors.
#   Merge errors are raised immediately.
#
# ==============================================

import json
import time
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from bson import json_util

from docschema.config import AppConfig, get_config
from docschema.classification.type_classifier import TypeClassifier
from docschema.analysis.corpus_aggregator import CorpusAggregator
from docschema.analysis.finalizer import finalize
from docschema.analysis.merger import merge_all
from docschema.analysis.schema import Schema
from docschema.errors import CardinalityOverflow, DocumentError, MalformedDocument


@dataclass
class AnalysisResult:
    """A finalized schema plus everything that went wrong producing it."""

    schema: Schema
    errors: List[DocumentError] = field(default_factory=list)
    warnings: List[CardinalityOverflow] = field(default_factory=list)
    cancelled: bool = False
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors and not self.cancelled

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "cancelled": self.cancelled,
            "elapsed_seconds": self.elapsed_seconds,
        }


@dataclass
class ShardResult:
    """What one shard worker hands back."""

    shard: int
    aggregator: CorpusAggregator
    errors: List[DocumentError] = field(default_factory=list)
    cancelled: bool = False


class SchemaAnalyser:
    """
    Analysis session: shards documents, aggregates them in parallel,
    merges the partials and finalizes a Schema.
    """

    def __init__(self, config: Optional[AppConfig] = None, classifier: Optional[TypeClassifier] = None):
        """
        Args:
            config: Application configuration. If None, loads from environment.
            classifier: Type classification rules. Defaults to the built-in rules.
        """
        self._config = config or get_config()
        self._classifier = classifier or TypeClassifier()
        self._settings = self._config.tracker_settings()

        self._shard_count = max(1, self._config.ingest.shard_count)
        self._max_workers = max(1, self._config.ingest.max_workers)
        self._fail_fast = self._config.ingest.fail_fast
        self._verbose = self._config.verbose

        self._cancel_event = threading.Event()

        # Incremental mode state
        self._aggregator = self.new_aggregator()
        self._errors: List[DocumentError] = []
        self._next_index = 0

        # Merged aggregate of the last batch run
        self._last_aggregator: Optional[CorpusAggregator] = None

    @property
    def classifier(self) -> TypeClassifier:
        return self._classifier

    @property
    def last_aggregator(self) -> Optional[CorpusAggregator]:
        """The merged (pre-finalization) aggregate behind the last analyse*() result."""
        return self._last_aggregator

    def new_aggregator(self) -> CorpusAggregator:
        """An empty aggregator with this session's rules and settings."""
        return CorpusAggregator(self._classifier, self._settings)

    def _log(self, message: str) -> None:
        if self._verbose:
            print(message)

    # ======================================
    # Batch API
    # ======================================
    def analyse(self, documents: Iterable[Any]) -> AnalysisResult:
        """
        Analyse a corpus, splitting it round-robin into shards.

        The stream is buffered into the shard lists first; for
        corpora that don't fit in memory pass lazy shards to
        analyse_shards() instead (e.g. MongoSource.iter_shards).

        Args:
            documents: Any iterable of documents

        Returns:
            AnalysisResult for the whole corpus
        """
        shards: List[List[Tuple[int, Any]]] = [[] for _ in range(self._shard_count)]
        for index, document in enumerate(documents):
            shards[index % self._shard_count].append((index, document))
        return self._run(shards)

    def analyse_shards(self, shards: Iterable[Iterable[Any]]) -> AnalysisResult:
        """
        Analyse a corpus that is already partitioned.

        Each shard is consumed sequentially by one worker; error
        indexes are positions within the shard.
        """
        return self._run([enumerate(shard) for shard in shards])

    def analyse_json(self, text: Union[str, bytes]) -> AnalysisResult:
        """
        Analyse a JSON (or MongoDB Extended JSON) corpus.

        Args:
            text: A JSON array of documents, or a single JSON object

        Raises:
            MalformedDocument: If the text isn't JSON, or its top level is
                neither an array nor an object
        """
        try:
            parsed = json_util.loads(text)
        except ValueError as e:
            raise MalformedDocument(f"invalid JSON: {e}") from e

        if isinstance(parsed, Mapping):
            documents: Sequence[Any] = [parsed]
        elif isinstance(parsed, list):
            documents = parsed
        else:
            raise MalformedDocument(
                f"top-level JSON value must be an array of documents or a document, "
                f"got {type(parsed).__name__}"
            )
        return self.analyse(documents)

    def _run(self, shards: Sequence[Iterable[Tuple[int, Any]]]) -> AnalysisResult:
        start_time = time.time()
        self._cancel_event.clear()

        results: List[ShardResult] = []
        failure: Optional[BaseException] = None

        workers = min(self._max_workers, max(1, len(shards)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="docschema-shard") as executor:
            futures = [
                executor.submit(self._run_shard, shard_no, shard)
                for shard_no, shard in enumerate(shards)
            ]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                try:
                    results.append(future.result())
                except MalformedDocument as e:
                    # fail-fast: stop the other shards, re-raise once they're done
                    if failure is None:
                        failure = e
                        self._cancel_event.set()
                        for pending in futures:
                            pending.cancel()

            if failure is not None:
                raise failure

            results.sort(key=lambda r: r.shard)

            cancelled = any(r.cancelled for r in results)
            # cancelled shards are discarded, not rolled back
            completed = [r for r in results if not r.cancelled]
            merged = merge_all(
                [r.aggregator for r in completed],
                executor=executor,
                classifier=self._classifier,
                settings=self._settings,
            )

        self._last_aggregator = merged
        errors = [e for r in results for e in r.errors]
        result = self._build_result(merged, errors, cancelled, start_time)
        self._log(
            f"✓ Analysed {result.schema.count} documents in {len(shards)} shard(s): "
            f"{len(result.schema.fields)} fields, {len(errors)} error(s) "
            f"({result.elapsed_seconds:.2f}s)"
        )
        if cancelled:
            self._log("⚠ Analysis was cancelled; the schema only covers completed shards")
        return result

    def _run_shard(self, shard_no: int, documents: Iterable[Tuple[int, Any]]) -> ShardResult:
        aggregator = self.new_aggregator()
        result = ShardResult(shard=shard_no, aggregator=aggregator)

        for index, document in documents:
            if self._cancel_event.is_set():
                result.cancelled = True
                return result
            try:
                aggregator.observe_document(document, index=index)
            except MalformedDocument as e:
                located = MalformedDocument(e.reason, index=index, shard=shard_no)
                if self._fail_fast:
                    raise located from e
                result.errors.append(DocumentError.from_exception(located))

        return result

    def _build_result(
        self,
        aggregator: CorpusAggregator,
        errors: List[DocumentError],
        cancelled: bool,
        start_time: float,
    ) -> AnalysisResult:
        schema = finalize(aggregator)
        warnings = [
            CardinalityOverflow(name, tag, tracker.exact_ceiling)
            for name, tag, tracker in aggregator.degraded_trackers()
        ]
        for warning in warnings:
            self._log(f"⚠ {warning}")

        return AnalysisResult(
            schema=schema,
            errors=errors,
            warnings=warnings,
            cancelled=cancelled,
            elapsed_seconds=round(time.time() - start_time, 3),
        )

    # ======================================
    # Incremental API
    # ======================================
    def ingest(self, document: Any) -> None:
        """
        Observe one document into the session's own aggregator.

        Raises:
            MalformedDocument: Only when fail_fast is configured
        """
        index = self._next_index
        self._next_index += 1
        try:
            self._aggregator.observe_document(document, index=index)
        except MalformedDocument as e:
            if self._fail_fast:
                raise
            self._errors.append(DocumentError.from_exception(e))

    def ingest_batch(self, documents: Iterable[Any]) -> None:
        for document in documents:
            self.ingest(document)

    def merge_partial(self, partial: Union[CorpusAggregator, Dict[str, Any]]) -> None:
        """
        Merge a partial aggregate (object or exchange snapshot) into the session.

        Raises:
            IncompatibleMerge: If the partial was built with other rules or settings
            SnapshotError: If a snapshot dict is malformed
        """
        if not isinstance(partial, CorpusAggregator):
            partial = CorpusAggregator.from_snapshot(partial, self._classifier)
        self._aggregator.merge(partial)
        self._log(f"✓ Merged partial ({partial.document_count} documents)")

    def partial_snapshot(self) -> Dict[str, Any]:
        return self._aggregator.to_snapshot()

    def partial_json(self) -> str:
        return json.dumps(self.partial_snapshot())

    @property
    def aggregator(self) -> CorpusAggregator:
        return self._aggregator

    def finalize(self) -> AnalysisResult:
        """
        Finalize what was ingested so far.

        The session's aggregator is left as it is; keep ingesting
        and finalize again, or reset() for a new batch.
        """
        return self._build_result(self._aggregator, list(self._errors), False, time.time())

    def reset(self) -> None:
        self._aggregator = self.new_aggregator()
        self._errors = []
        self._next_index = 0

    # ======================================
    # Control / inspection
    # ======================================
    def cancel(self) -> None:
        """Ask running shard workers to stop before their next document."""
        self._cancel_event.set()

    def get_status(self) -> Dict[str, Any]:
        return {
            "documents_observed": self._aggregator.document_count,
            "fields_discovered": len(self._aggregator.fields),
            "errors": len(self._errors),
            "shard_count": self._shard_count,
            "max_workers": self._max_workers,
            "tracker_strategy": self._settings.default_strategy.value,
            "classifier": self._classifier.signature,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
