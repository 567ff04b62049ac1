"""Tests for the storage backend."""

from pathlib import Path

import pytest

from marketmind.api.database import StorageError
from marketmind.api.schemas import (
    CampaignSuggestion,
    ChurnPrediction,
    CustomerSegment,
    DatasetStatus,
)


def make_prediction(dataset_id, prediction_id="pred-local"):
    return ChurnPrediction(
        id=prediction_id, dataset_id=dataset_id, accuracy=0.9, precision=0.8, recall=0.7,
        f1_score=0.75, churn_rate=0.2, predicted_churn_count=20, total_customers=100,
    )


SEGMENTS = [
    CustomerSegment(id="s0", name="Champions", size=60, percentage=60.0,
                    avg_ltv=900, avg_engagement=0.8, churn_risk=0.1, color="#4A6FFF"),
    CustomerSegment(id="s1", name="Hibernating", size=40, percentage=40.0,
                    avg_ltv=200, avg_engagement=0.2, churn_risk=0.6, color="#FF6B6B"),
]


def upload(storage, sample_csv, user_id="u1"):
    return storage.upload_dataset(sample_csv, "123-customers.csv", user_id, {
        "name": "Customers",
        "description": "All customers",
        "row_count": 100,
        "column_count": 4,
        "file_size": len(sample_csv),
    })


def test_upload_dataset_writes_file_and_record(storage, sample_csv):
    result = upload(storage, sample_csv)

    path = Path(result["file_url"])
    assert path.read_bytes() == sample_csv
    assert path.parent.name == "u1"

    datasets = storage.get_user_datasets("u1")
    assert len(datasets) == 1
    assert datasets[0].id == result["dataset_id"]
    assert datasets[0].status == DatasetStatus.UPLOADED
    assert datasets[0].row_count == 100
    assert datasets[0].prediction_id is None
    assert storage.get_user_datasets("someone-else") == []


def test_store_result_links_dataset(storage, sample_csv):
    dataset_id = upload(storage, sample_csv)["dataset_id"]
    suggestions = [
        CampaignSuggestion(id="c0", title="Win-Back", description="20% off", target_segment="Hibernating",
                           expected_impact=0.3, difficulty="easy", channels=["email"]),
        CampaignSuggestion(id="c1", title="Other", description="x", target_segment="Unknown",
                           expected_impact=0.1, difficulty="hard", channels=["sms"], cta="Go"),
    ]

    result = storage.store_dataset_result("u1", dataset_id, "file.csv", make_prediction(dataset_id),
                                          SEGMENTS, suggestions)

    assert result.dataset_linked
    assert result.error is None
    assert result.prediction_id != "pred-local"

    record = storage.get_prediction(result.prediction_id)
    assert record["segments"] == {"0": 60, "1": 40}
    assert record["segment_details"][1]["name"] == "Hibernating"
    assert record["suggestions"] == [
        {"segment": 1, "subject": "Win-Back", "body": "20% off", "cta": "Learn More"},
        {"segment": -1, "subject": "Other", "body": "x", "cta": "Go"},
    ]

    dataset = storage.get_dataset(dataset_id)
    assert dataset.prediction_id == result.prediction_id
    assert dataset.status == DatasetStatus.PROCESSED


def test_store_result_updates_existing_prediction(storage, sample_csv):
    dataset_id = upload(storage, sample_csv)["dataset_id"]
    first = storage.store_dataset_result("u1", dataset_id, None, make_prediction(dataset_id), SEGMENTS)

    stored = make_prediction(dataset_id, prediction_id=first.prediction_id)
    second = storage.store_dataset_result("u1", dataset_id, None, stored, SEGMENTS[:1])

    assert second.prediction_id == first.prediction_id
    assert storage.get_prediction(first.prediction_id)["segments"] == {"0": 60}


def test_store_result_reports_unlinked_dataset(storage):
    result = storage.store_dataset_result("u1", "missing", None, make_prediction("missing"), SEGMENTS)

    assert not result.dataset_linked
    assert "failed to update dataset" in result.error
    assert storage.get_prediction(result.prediction_id) is not None


def test_delete_dataset(storage, sample_csv):
    result = upload(storage, sample_csv)

    assert storage.delete_dataset(result["dataset_id"])
    assert not Path(result["file_url"]).exists()
    assert storage.get_dataset(result["dataset_id"]) is None
    assert not storage.delete_dataset(result["dataset_id"])


def test_update_missing_dataset_raises(storage):
    with pytest.raises(StorageError):
        storage.update_dataset_with_prediction("missing", "pred-1")


def test_user_documents(storage):
    profile = storage.create_user("ana@example.com", password_hash="hash", display_name="Ana")
    assert profile.plan == "free"
    assert profile.company == "Not set"

    with pytest.raises(StorageError):
        storage.create_user("ana@example.com")

    updated = storage.update_user_profile(profile.id, {"company": "Acme", "name": None})
    assert updated.company == "Acme"
    assert updated.name == "Ana"
    assert storage.get_user_by_email("ana@example.com")["password_hash"] == "hash"
    assert storage.ping()
