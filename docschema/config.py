# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load and validate all configuration from environment
#   variables / .env file. Provides typed config objects
#   to all other modules.
#
# CLASSES:
# --------
# - TrackerConfig (dataclass)
#     strategy: str             (default "exact")
#     exact_ceiling: int        (default 100000)
#     sketch_precision: int     (default 14)
#     approximate_fields: list  (default [])
#
# - IngestConfig (dataclass)
#     shard_count: int          (default 4)
#     max_workers: int          (default 4)
#     fail_fast: bool           (default False)
#
# - MongoConfig (dataclass)
#     host: str          (default "localhost")
#     port: int          (default 27017)
#     user: str | None   (default None)
#     password: str | None (default None)
#     database: str      (default "schema_db")
#     collection: str    (default "documents")
#
# - AppConfig (dataclass)
#     tracker: TrackerConfig
#     ingest: IngestConfig
#     mongo: MongoConfig
#     data_stream_url: str       (default "http://127.0.0.1:8000/GET/record")
#     metadata_dir: str          (default "metadata/")
#     verbose: bool              (default True)
#
# FUNCTION:
# ---------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
#
# USAGE:
# ------
#   from docschema.config import get_config
#   config = get_config()
#   print(config.tracker.strategy)
#   print(config.ingest.shard_count)
#
# ==============================================

import os
from dataclasses import dataclass, field
from typing import List, Optional
from pathlib import Path

from dotenv import load_dotenv

from docschema.analysis.value_tracker import Strategy, TrackerSettings


_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class TrackerConfig:
    """Duplicate-tracking configuration for value trackers."""
    strategy: str = "exact"
    exact_ceiling: int = 100_000
    sketch_precision: int = 14
    approximate_fields: List[str] = field(default_factory=list)


@dataclass
class IngestConfig:
    """Sharding configuration for parallel ingestion."""
    shard_count: int = 4
    max_workers: int = 4
    fail_fast: bool = False


@dataclass
class MongoConfig:
    """MongoDB source configuration."""
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "schema_db"
    collection: str = "documents"


@dataclass
class AppConfig:
    """Main application configuration."""
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    data_stream_url: str = "http://127.0.0.1:8000/GET/record"
    metadata_dir: str = "metadata/"
    verbose: bool = True

    def tracker_settings(self) -> TrackerSettings:
        """
        Build the TrackerSettings the aggregation core uses.

        Raises:
            ValueError: If the configured strategy name is unknown
        """
        overrides = {name: Strategy.APPROXIMATE for name in self.tracker.approximate_fields}
        return TrackerSettings(
            default_strategy=Strategy.parse(self.tracker.strategy),
            overrides=overrides,
            exact_ceiling=self.tracker.exact_ceiling,
            sketch_precision=self.tracker.sketch_precision,
        )


# Singleton instance
_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    tracker_config = TrackerConfig(
        strategy=os.getenv("SCHEMA_TRACKER_STRATEGY", "exact"),
        exact_ceiling=int(os.getenv("SCHEMA_EXACT_CEILING", "100000")),
        sketch_precision=int(os.getenv("SCHEMA_SKETCH_PRECISION", "14")),
        approximate_fields=_env_list("SCHEMA_APPROXIMATE_FIELDS"),
    )

    ingest_config = IngestConfig(
        shard_count=int(os.getenv("SCHEMA_SHARD_COUNT", "4")),
        max_workers=int(os.getenv("SCHEMA_MAX_WORKERS", "4")),
        fail_fast=_env_bool("SCHEMA_FAIL_FAST", "false"),
    )

    mongo_config = MongoConfig(
        host=os.getenv("MONGO_HOST", "localhost"),
        port=int(os.getenv("MONGO_PORT", "27017")),
        user=os.getenv("MONGO_USER") or None,
        password=os.getenv("MONGO_PASSWORD") or None,
        database=os.getenv("MONGO_DATABASE", "schema_db"),
        collection=os.getenv("MONGO_COLLECTION", "documents"),
    )

    _config_instance = AppConfig(
        tracker=tracker_config,
        ingest=ingest_config,
        mongo=mongo_config,
        data_stream_url=os.getenv("DATA_STREAM_URL", "http://127.0.0.1:8000/GET/record"),
        metadata_dir=os.getenv("METADATA_DIR", "metadata/"),
        verbose=_env_bool("SCHEMA_VERBOSE", "true"),
    )

    return _config_instance


def reset_config() -> None:
    """Drop the cached singleton so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
