# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests.
#
# - sample_document    → the single-document corpus from the docs
# - sample_documents   → a small mixed-type corpus
# - app_config         → quiet AppConfig writing metadata to tmp_path
# - analyser           → SchemaAnalyser built from app_config
# ==============================================

import pytest

from docschema.config import AppConfig, IngestConfig, TrackerConfig
from docschema.ingest_and_analyse import SchemaAnalyser


@pytest.fixture
def sample_document():
    """The single document from the output-shape example."""
    return {"name": "Depeche Mode", "albums": 20, "rating": 10.5, "active": True}


@pytest.fixture
def sample_documents():
    """A small corpus with sparse fields, type drift and duplicates."""
    return [
        {"name": "Depeche Mode", "albums": 20, "rating": 10.5, "active": True},
        {"name": "New Order", "albums": 10, "active": True, "label": "Factory"},
        {"name": "Joy Division", "albums": "2", "rating": 9.8, "tags": ["post-punk"]},
        {"name": "Depeche Mode", "albums": 20, "rating": None},
        {"name": "Kraftwerk", "albums": 10, "active": False, "members": {"count": 4}},
        {"name": "Yazoo", "albums": 2, "active": True, "label": None},
    ]


@pytest.fixture
def app_config(tmp_path):
    """A quiet configuration that keeps metadata inside tmp_path."""
    return AppConfig(
        tracker=TrackerConfig(),
        ingest=IngestConfig(shard_count=3, max_workers=3),
        metadata_dir=str(tmp_path / "metadata"),
        verbose=False,
    )


@pytest.fixture
def analyser(app_config):
    return SchemaAnalyser(app_config)
