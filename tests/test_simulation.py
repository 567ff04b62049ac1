"""Tests for the local simulation fallback."""

import asyncio

import pytest

from marketmind.api.schemas import CustomerSegment, Dataset
from marketmind.services import CampaignService
from marketmind.services.simulation import (
    SEGMENT_PROFILES,
    fallback_process_dataset,
    identifier_checksum,
    simulate_generate_campaigns,
    simulate_process_dataset,
)


def make_segment(i, name):
    return CustomerSegment(id=f"s{i}", name=name, size=10, percentage=25.0,
                           avg_ltv=100, avg_engagement=0.5, churn_risk=0.2, color="#000000")


def test_identifier_checksum():
    assert identifier_checksum("abc") == 294
    assert identifier_checksum("") == 0


def test_simulated_metrics_follow_checksum():
    # checksum("1") == 49
    prediction, _ = simulate_process_dataset(Dataset(id="1", name="d", row_count=1000), user_id="u1")

    assert prediction.churn_rate == pytest.approx(0.14)
    assert prediction.accuracy == pytest.approx(0.84)
    assert prediction.precision == pytest.approx(0.94)
    assert prediction.recall == pytest.approx(0.84)
    assert prediction.f1_score == pytest.approx(0.75)
    assert prediction.predicted_churn_count == 140
    assert prediction.total_customers == 1000
    assert prediction.user_id == "u1"
    assert prediction.dataset_id == "1"


def test_simulated_segments_cover_every_customer():
    _, segments = simulate_process_dataset(Dataset(id="dataset-42", name="d", row_count=5243))

    assert [s.name for s in segments] == [p["name"] for p in SEGMENT_PROFILES]
    assert sum(s.size for s in segments) == 5243
    assert all(s.size >= 0 for s in segments)
    assert sum(s.percentage for s in segments) == pytest.approx(100, abs=0.3)
    assert [s.avg_ltv for s in segments] == [950, 820, 320, 180]
    assert [s.color for s in segments] == ["#4A6FFF", "#FF6B6B", "#FFC107", "#4CAF50"]


def test_simulation_is_deterministic_per_dataset():
    dataset = Dataset(id="abc123", name="d", row_count=777)
    first = [s.size for s in simulate_process_dataset(dataset)[1]]
    second = [s.size for s in simulate_process_dataset(dataset)[1]]
    assert first == second


def test_simulation_of_empty_dataset():
    prediction, segments = simulate_process_dataset(Dataset(id="x", name="empty", row_count=0))

    assert prediction.predicted_churn_count == 0
    assert all(s.size == 0 and s.percentage == 0 for s in segments)


def test_fallback_split():
    prediction, segments = fallback_process_dataset(Dataset(id="x", name="d", row_count=1000))

    assert prediction.churn_rate == 0.15
    assert prediction.predicted_churn_count == 150
    assert [s.size for s in segments] == [300, 250, 250, 200]
    assert [s.percentage for s in segments] == pytest.approx([30, 25, 25, 20])


def test_campaigns_target_their_segments():
    segments = [make_segment(i, p["name"]) for i, p in enumerate(SEGMENT_PROFILES)]
    suggestions = simulate_generate_campaigns(segments)

    assert [c.title for c in suggestions] == [
        "Loyalty Rewards Program",
        "Win-Back Discount Campaign",
        "Seasonal Engagement Campaign",
        "Product Education Series",
    ]
    assert [c.target_segment for c in suggestions] == [s.name for s in segments]
    assert [c.segment for c in suggestions] == [0, 1, 2, 3]
    assert suggestions[1].cta == "Claim Offer"
    assert suggestions[1].channels == ["email", "sms"]


def test_campaigns_default_to_first_segment_when_missing():
    segments = [make_segment(0, "Champions"), make_segment(1, "Hibernating")]
    suggestions = simulate_generate_campaigns(segments)

    assert [c.target_segment for c in suggestions] == ["Champions", "Hibernating", "Champions", "Champions"]


def test_campaign_service_falls_back_without_segments(test_config):
    suggestions = asyncio.run(CampaignService(test_config).generate_campaigns([]))

    assert len(suggestions) == 2
    assert suggestions[0].target_segment == "High-Value Loyalists"
    assert suggestions[1].target_segment == "At-Risk Big Spenders"
