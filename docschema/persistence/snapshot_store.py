import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from docschema.analysis.corpus_aggregator import CorpusAggregator
from docschema.analysis.schema import Schema
from docschema.classification.type_classifier import TypeClassifier
from docschema.errors import SnapshotError


# ==============================================
# SnapshotStore
# ==============================================
#
# PURPOSE:
#   Persist partial aggregates and finalized schemas to disk so
#   that shards analysed by different processes (or different
#   runs) can be merged later by a coordinator.
#
# WHAT IS PERSISTED:
#   1. Partial aggregates  → one JSON file per shard / run name
#   2. Schema              → the latest finalized schema
#   3. State               → document count and save time
#
# FILE STRUCTURE:
# ---------------
#   metadata/
#   ├── partials/<name>.json  → CorpusAggregator.to_snapshot()
#   ├── schema.json           → Schema.to_dict()
#   └── state.json            → {document_count, saved_at, version}
#
# ==============================================
class SnapshotStore:
    """
    Handles persistence of partial aggregates and schemas to disk.
    """

    def __init__(self, storage_dir: str = "metadata/", verbose: bool = True):
        """
        Initialize the snapshot store.

        Args:
            storage_dir: Directory to store metadata files
            verbose: Print a status line for every save/load
        """
        self.storage_dir = Path(storage_dir)
        self.verbose = verbose

        # Create directories if they don't exist
        self.partials_dir = self.storage_dir / "partials"
        self.partials_dir.mkdir(parents=True, exist_ok=True)

        self.schema_file = self.storage_dir / "schema.json"
        self.state_file = self.storage_dir / "state.json"

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def _partial_path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ValueError(f"Invalid partial name: {name!r}")
        return self.partials_dir / f"{name}.json"

    # ======================================
    # Saving
    # ======================================
    def save_partial(self, name: str, aggregator: CorpusAggregator) -> Path:
        """
        Save a partial aggregate under a name.

        Args:
            name: Shard or run identifier
            aggregator: The partial aggregate

        Returns:
            Path of the written file
        """
        path = self._partial_path(name)
        with open(path, 'w') as f:
            json.dump(aggregator.to_snapshot(), f, indent=2)

        self._log(f"✓ Saved partial '{name}' ({aggregator.document_count} documents) to {path}")
        return path

    def save_schema(self, schema: Schema) -> None:
        with open(self.schema_file, 'w') as f:
            json.dump(schema.to_dict(), f, indent=2)

        self._log(f"✓ Saved schema ({len(schema.fields)} fields) to {self.schema_file}")

    def save_state(self, document_count: int) -> None:
        state = {
            "document_count": document_count,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "version": "1.0"
        }

        with open(self.state_file, 'w') as f:
            json.dump(state, f, indent=2)

        self._log(f"✓ Saved state (document_count={document_count}) to {self.state_file}")

    # ======================================
    # Loading
    # ======================================
    def load_partial(self, name: str, classifier: Optional[TypeClassifier] = None) -> CorpusAggregator:
        """
        Load a partial aggregate saved with save_partial().

        Raises:
            FileNotFoundError: If no partial with that name exists
            SnapshotError: If the file isn't a valid snapshot
        """
        path = self._partial_path(name)
        if not path.exists():
            raise FileNotFoundError(f"No partial named '{name}' in {self.partials_dir}")

        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"{path} is not valid JSON: {e}") from e

        aggregator = CorpusAggregator.from_snapshot(data, classifier)
        self._log(f"✓ Loaded partial '{name}' ({aggregator.document_count} documents)")
        return aggregator

    def list_partials(self) -> List[str]:
        return sorted(p.stem for p in self.partials_dir.glob("*.json"))

    def load_schema(self) -> Optional[Schema]:
        """
        Load the stored schema.

        Returns:
            The Schema, or None if none was saved yet
        """
        if not self.schema_file.exists():
            self._log(f"No schema file found at {self.schema_file}")
            return None

        with open(self.schema_file, 'r') as f:
            return Schema.from_dict(json.load(f))

    def load_state(self) -> Dict[str, Any]:
        if not self.state_file.exists():
            return {
                "document_count": 0,
                "saved_at": None,
                "version": "1.0"
            }

        with open(self.state_file, 'r') as f:
            return json.load(f)

    # ======================================
    # Utility
    # ======================================
    def exists(self) -> bool:
        """True if anything was saved before (i.e., this is a restart)."""
        return (
            self.schema_file.exists() or
            self.state_file.exists() or
            bool(self.list_partials())
        )

    def clear(self) -> None:
        """Delete all stored partials, schema and state."""
        files_to_delete = [self.schema_file, self.state_file]
        files_to_delete.extend(self.partials_dir.glob("*.json"))

        for file in files_to_delete:
            if file.exists():
                file.unlink()
                self._log(f"🗑️  Deleted {file}")

        self._log("All metadata cleared!")
