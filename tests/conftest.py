"""Shared fixtures for the MarketMind test suite."""

import json
import sys
from pathlib import Path

import httpx
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from marketmind.api.database import DatabaseManager
from marketmind.services import AuthService, MLApiClient
from marketmind.store import AppStore, AuthStore


ML_URL = "http://ml.test/predict"

ML_PAYLOAD = {
    "summary": {
        "model_accuracy": 0.91,
        "model_precision": 0.88,
        "model_recall": 0.77,
        "model_f1": 0.82,
        "avg_churn": 0.2,
        "segment_counts": {"0": 60, "1": 40},
    },
    "segment_names": {"0": "Champions", "1": "Hibernating"},
    "segment_metrics": {
        "0": {"avg_ltv": 1200, "avg_engagement": 0.8, "churn_risk": 0.1},
    },
}


@pytest.fixture
def test_config(tmp_path):
    """Configuration with no artificial delays."""
    return {
        "app": {"version": "test"},
        "ml_api": {"enabled": True, "url": ML_URL, "timeout": 5},
        "simulation": {
            "analysis_delay": 0,
            "campaign_delay": 0,
            "export_delay": 0,
            "export_success_rate": 1.0,
        },
        "store": {
            "analysis_timeout": 5,
            "campaign_timeout": 5,
            "export_timeout": 5,
            "fetch_timeout": 5,
            "processing_delay": 0,
            "state_file": str(tmp_path / "state.json"),
        },
        "storage": {"enabled": True},
        "auth": {"demo_mode": False},
    }


@pytest.fixture
def storage(tmp_path):
    """In-memory storage backend."""
    return DatabaseManager("sqlite://", upload_dir=tmp_path / "uploads")


@pytest.fixture
def sample_csv():
    """A 100-customer CSV file."""
    lines = ["customer_id,tenure,orders,churned"]
    lines += [f"C{i:03d},{i % 24},{i % 7},{i % 5 == 0:d}" for i in range(100)]
    return ("\n".join(lines) + "\n").encode()


def json_transport(payload=ML_PAYLOAD, status_code=200, requests=None):
    """httpx transport answering every request with a fixed response."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            request.read()
            requests.append(request)
        return httpx.Response(status_code, content=json.dumps(payload).encode(),
                              headers={"Content-Type": "application/json"})

    return httpx.MockTransport(handler)


@pytest.fixture
def ml_client(test_config):
    """ML client backed by a stub service that returns ML_PAYLOAD."""
    return MLApiClient(test_config, transport=json_transport())


@pytest.fixture
def auth_store(test_config, storage):
    """Session signed in as the built-in demo user."""
    store = AuthStore(AuthService(test_config, storage=storage))
    assert store.login("demo@example.com", "password123")
    return store


@pytest.fixture
def app_store(test_config, storage, auth_store, ml_client):
    """App store wired to in-memory storage and the stub ML service."""
    from marketmind.services import AnalysisService, CampaignService

    return AppStore(
        auth_store,
        config=test_config,
        storage=storage,
        analysis_service=AnalysisService(test_config, storage=storage, ml_client=ml_client),
        campaign_service=CampaignService(test_config),
    )
