# ==============================================
# PERSISTENCE
# ==============================================
#
# Saves partial aggregates and finalized schemas so that
# shards analysed elsewhere can be merged by a coordinator.
#
# Modules:
# --------
# - snapshot_store.py  → Save/load partials, schema and state
#
# ==============================================

from .snapshot_store import SnapshotStore

__all__ = ["SnapshotStore"]
