# ==============================================
# SOURCES
# ==============================================
#
# External document suppliers. The aggregation engine only
# ever sees mappings; these modules get them from somewhere.
#
# Modules:
# --------
# - mongo_source.py → Read (and shard) a MongoDB collection
# - http_source.py  → Pull JSON documents from an HTTP endpoint
#
# ==============================================

from .mongo_source import MongoSource
from .http_source import stream_documents

__all__ = ["MongoSource", "stream_documents"]
