"""Tests for the REST API."""

import pytest
from fastapi.testclient import TestClient

from marketmind.api.main import create_app


@pytest.fixture
def client(test_config, storage, ml_client):
    app = create_app(test_config, storage=storage, ml_client=ml_client)
    with TestClient(app) as test_client:
        yield test_client


def login(client):
    response = client.post("/auth/login", json={"email": "demo@example.com", "password": "password123"})
    assert response.status_code == 200
    return response.json()


def upload(client, sample_csv):
    response = client.post(
        "/datasets",
        data={"name": "Q3 Customers", "description": "Quarterly export"},
        files={"file": ("customers.csv", sample_csv, "text/csv")},
    )
    assert response.status_code == 201
    return response.json()


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "MarketMind API"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["storage_connected"] is True
    assert health["ml_api_enabled"] is True
    assert health["authenticated"] is False


def test_requires_sign_in(client):
    assert client.get("/datasets").status_code == 401
    assert client.get("/auth/me").status_code == 401


def test_login_failure(client):
    response = client.post("/auth/login", json={"email": "demo@example.com", "password": "wrong"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


def test_register_and_update_profile(client):
    response = client.post("/auth/register", json={"email": "ana@example.com", "password": "pw", "name": "Ana"})
    assert response.status_code == 201
    assert response.json()["plan"] == "free"

    response = client.patch("/auth/me", json={"company": "Acme"})
    assert response.status_code == 200
    assert response.json()["company"] == "Acme"
    assert client.get("/auth/me").json()["company"] == "Acme"


def test_full_workflow(client, sample_csv):
    profile = login(client)
    assert profile["id"] == "demo-user-id"

    dataset = upload(client, sample_csv)
    assert dataset["row_count"] == 100
    assert dataset["column_count"] == 4
    assert dataset["status"] == "uploaded"

    response = client.post(f"/datasets/{dataset['id']}/analysis")
    assert response.status_code == 200
    analysis = response.json()
    assert analysis["dataset_id"] == dataset["id"]
    assert analysis["churn_prediction"]["accuracy"] == 0.91
    assert [s["name"] for s in analysis["customer_segments"]] == ["Champions", "Hibernating"]

    response = client.post("/campaigns/generate")
    assert response.status_code == 200
    campaigns = response.json()
    assert len(campaigns) == 4
    assert client.get("/campaigns").json() == campaigns

    response = client.post(f"/campaigns/{campaigns[0]['id']}/export")
    assert response.json() == {"campaign_id": campaigns[0]["id"], "success": True, "message": None}

    datasets = client.get("/datasets").json()
    assert [d["id"] for d in datasets] == [dataset["id"]]
    assert datasets[0]["prediction_id"] == analysis["churn_prediction"]["id"]


def test_analysis_errors(client):
    login(client)

    assert client.post("/datasets/missing/analysis").status_code == 404
    assert client.post("/campaigns/generate").status_code == 409


def test_export_unknown_campaign(client):
    login(client)

    response = client.post("/campaigns/camp-missing/export")
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["message"] == "Campaign not found: camp-missing"


def test_select_and_delete_dataset(client, sample_csv):
    login(client)
    dataset = upload(client, sample_csv)

    assert client.post(f"/datasets/{dataset['id']}/select").status_code == 200
    assert client.delete(f"/datasets/{dataset['id']}").status_code == 200
    assert client.delete(f"/datasets/{dataset['id']}").status_code == 404
    assert client.get("/datasets").json() == []


def test_logout(client):
    login(client)

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_logout_clears_analysis(client, sample_csv):
    login(client)
    dataset = upload(client, sample_csv)
    assert client.post(f"/datasets/{dataset['id']}/analysis").status_code == 200
    client.post("/auth/logout")

    response = client.post("/auth/login", json={"email": "admin@example.com", "password": "admin123"})
    assert response.status_code == 200

    analysis = client.get("/analysis").json()
    assert analysis["churn_prediction"] is None
    assert analysis["customer_segments"] == []
    assert analysis["campaign_suggestions"] == []
