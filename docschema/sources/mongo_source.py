# ==============================================
# MongoSource
# ==============================================
#
# PURPOSE:
#   Pull documents out of a MongoDB collection for analysis.
#   The aggregation core never talks to the database; this
#   class is the external iterator that feeds it.
#
# CLASS: MongoSource
# ------------------
#   Stateful — holds connection to MongoDB.
#
#   Constructor:
#   ------------
#   - __init__(host, port, database, user=None, password=None)
#
#   Methods:
#   --------
#   - connect() -> None
#   - disconnect() -> None
#   - iter_documents(collection_name, query=None, limit=None)
#       Stream documents from one cursor.
#   - iter_shards(collection_name, shard_count, query=None)
#       Split the collection into contiguous skip/limit windows
#       ordered by _id; one lazy cursor per shard.
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoSource(...) as source:` usage.
#
# ==============================================

import math
from typing import Any, Dict, Iterator, List, Optional

from pymongo import ASCENDING
from pymongo import MongoClient as PyMongoClient
from pymongo.errors import ConnectionFailure, OperationFailure


class MongoSource:
    def __init__(self, host, port, database, user=None, password=None, verbose: bool = True):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.verbose = verbose
        self.client = None  # Will hold the actual MongoDB client connection

    @classmethod
    def from_config(cls, config) -> "MongoSource":
        """Build a source from an AppConfig."""
        return cls(
            host=config.mongo.host,
            port=config.mongo.port,
            database=config.mongo.database,
            user=config.mongo.user,
            password=config.mongo.password,
            verbose=config.verbose,
        )

    def connect(self):
        # Establish connection to MongoDB.
        try:
            if self.user and self.password:
                uri = f"mongodb://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"
            else:
                uri = f"mongodb://{self.host}:{self.port}/{self.database}"
            self.client = PyMongoClient(uri)
            # Test connection
            self.client.admin.command('ping')
            if self.verbose:
                print("✓ Connected to MongoDB.")
        except ConnectionFailure as e:
            print(f"✗ Could not connect to MongoDB: {e}")
            raise
        except OperationFailure as e:
            print(f"✗ Authentication failed: {e}")
            raise

    def disconnect(self):
        # Close connection.
        if self.client:
            self.client.close()
            if self.verbose:
                print("✓ Disconnected from MongoDB.")
            self.client = None

    def _collection(self, collection_name: str):
        if not self.client:
            raise RuntimeError("Not connected to MongoDB.")
        return self.client[self.database][collection_name]

    def count_documents(self, collection_name: str, query: Optional[Dict[str, Any]] = None) -> int:
        return self._collection(collection_name).count_documents(query or {})

    def iter_documents(
        self,
        collection_name: str,
        query: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> Iterator[Dict[str, Any]]:
        cursor = self._collection(collection_name).find(query or {})
        if limit:
            cursor = cursor.limit(limit)
        yield from cursor

    def iter_shards(
        self,
        collection_name: str,
        shard_count: int,
        query: Optional[Dict[str, Any]] = None,
    ) -> List[Iterator[Dict[str, Any]]]:
        """
        Partition a collection into contiguous shards.

        Args:
            collection_name: Collection to read
            shard_count: Number of shards wanted
            query: Optional filter applied to every shard

        Returns:
            A list of lazy document iterators, one per non-empty shard
        """
        if shard_count < 1:
            raise ValueError(f"shard_count must be positive, got {shard_count}")

        total = self.count_documents(collection_name, query)
        if total == 0:
            return []

        window = math.ceil(total / shard_count)
        return [
            self._iter_window(collection_name, query, start, window)
            for start in range(0, total, window)
        ]

    def _iter_window(self, collection_name, query, skip, limit) -> Iterator[Dict[str, Any]]:
        cursor = (
            self._collection(collection_name)
            .find(query or {})
            .sort("_id", ASCENDING)
            .skip(skip)
            .limit(limit)
        )
        yield from cursor

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
        return False
