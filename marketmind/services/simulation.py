"""
Simulation Module
=================

Local stand-ins for the remote ML service. Results are derived from the
dataset identifier so the same dataset always gets the same numbers.
"""

import math
from datetime import datetime
from typing import List, Sequence, Tuple

from marketmind.api.schemas import (
    SEGMENT_COLORS,
    CampaignSuggestion,
    ChurnPrediction,
    CustomerSegment,
    Dataset,
)
from marketmind.utils import round_half_up, safe_divide, timestamp_ms


SEGMENT_PROFILES = [
    {"name": "High-Value Loyalists", "avg_ltv": 950, "avg_engagement": 0.89, "churn_risk": 0.05},
    {"name": "At-Risk Big Spenders", "avg_ltv": 820, "avg_engagement": 0.45, "churn_risk": 0.72},
    {"name": "Occasional Buyers", "avg_ltv": 320, "avg_engagement": 0.38, "churn_risk": 0.28},
    {"name": "New Enthusiasts", "avg_ltv": 180, "avg_engagement": 0.76, "churn_risk": 0.12},
]

# (segment share, avg_ltv) used when the simulation itself fails
FALLBACK_SPLIT = [(0.30, 950), (0.25, 720), (0.25, 220), (0.20, 180)]

CAMPAIGN_TEMPLATES = [
    {
        "segment_index": 0,
        "title": "Loyalty Rewards Program",
        "description": "Introduce a tiered rewards program for High-Value Loyalists to increase retention and purchase frequency",
        "expected_impact": 0.15,
        "difficulty": "medium",
        "channels": ["email", "push"],
        "subject": "Thanks for being a power user 💪",
        "body": "You're in our top 10%! Here's an exclusive tip to boost your experience...",
        "cta": "Learn More",
    },
    {
        "segment_index": 1,
        "title": "Win-Back Discount Campaign",
        "description": "Offer a limited-time 20% discount to At-Risk Big Spenders to prevent churn and re-engage",
        "expected_impact": 0.32,
        "difficulty": "easy",
        "channels": ["email", "sms"],
        "subject": "Don't Miss Out! Here's 20% Just for You",
        "body": "We noticed you've been inactive. Come back and enjoy 20% off on your next visit!",
        "cta": "Claim Offer",
    },
    {
        "segment_index": 2,
        "title": "Seasonal Engagement Campaign",
        "description": "Develop a seasonal campaign to re-engage Occasional Buyers with personalized product recommendations",
        "expected_impact": 0.22,
        "difficulty": "hard",
        "channels": ["email", "social"],
        "subject": "We miss you! Come back and see what's new",
        "body": "It's been a while since your last purchase. We've added new products we think you'll love!",
        "cta": "Shop Now",
    },
    {
        "segment_index": 3,
        "title": "Product Education Series",
        "description": "Create a series of educational content for New Enthusiasts to showcase product value and features",
        "expected_impact": 0.18,
        "difficulty": "medium",
        "channels": ["email", "push"],
        "subject": "Welcome to the family! Here's a special gift",
        "body": "Thank you for joining us! To help you get started, here's a special welcome discount on your next purchase.",
        "cta": "Get Started",
    },
]

FALLBACK_CAMPAIGN_DESCRIPTIONS = [
    "Introduce a tiered rewards program to increase retention and purchase frequency",
    "Offer a limited-time 20% discount to prevent churn and re-engage",
]


def identifier_checksum(identifier: str) -> int:
    """Sum of the character codes of an identifier."""
    return sum(ord(c) for c in identifier)


def simulate_process_dataset(
    dataset: Dataset,
    user_id: str = None
) -> Tuple[ChurnPrediction, List[CustomerSegment]]:
    """
    Produce a churn prediction and four segments for a dataset.

    Args:
        dataset: Dataset to "analyse"
        user_id: Owner recorded on the prediction

    Returns:
        Tuple of (prediction, segments)
    """
    checksum = identifier_checksum(dataset.id)
    rows = dataset.row_count
    stamp = timestamp_ms()

    churn_rate = (checksum % 20 + 5) / 100
    prediction = ChurnPrediction(
        id=f"pred-{stamp}",
        dataset_id=dataset.id,
        accuracy=0.75 + (checksum % 20) / 100,
        precision=0.70 + (checksum % 25) / 100,
        recall=0.65 + (checksum % 30) / 100,
        f1_score=0.72 + (checksum % 23) / 100,
        churn_rate=churn_rate,
        predicted_churn_count=round_half_up(rows * churn_rate),
        total_customers=rows,
        user_id=user_id,
        file_url=dataset.file_uri,
    )

    segments = []
    remaining = rows
    last = len(SEGMENT_PROFILES) - 1
    for i, profile in enumerate(SEGMENT_PROFILES):
        if i == last:
            size = max(remaining, 0)
        else:
            share = 0.15 + (math.sin(checksum + i) * 0.1 + 0.1)
            size = min(round_half_up(rows * share), max(remaining, 0))
        remaining -= size

        segments.append(CustomerSegment(
            id=f"seg-{i}-{stamp}",
            name=profile["name"],
            size=size,
            percentage=round(safe_divide(size, rows) * 100, 1),
            avg_ltv=profile["avg_ltv"],
            avg_engagement=profile["avg_engagement"],
            churn_risk=profile["churn_risk"],
            color=SEGMENT_COLORS[i],
        ))

    return prediction, segments


def fallback_process_dataset(
    dataset: Dataset,
    user_id: str = None
) -> Tuple[ChurnPrediction, List[CustomerSegment]]:
    """Fixed results used when the simulation cannot run."""
    rows = dataset.row_count
    stamp = timestamp_ms()

    prediction = ChurnPrediction(
        id=f"pred-fallback-{stamp}",
        dataset_id=dataset.id,
        accuracy=0.85,
        precision=0.83,
        recall=0.79,
        f1_score=0.81,
        churn_rate=0.15,
        predicted_churn_count=round_half_up(rows * 0.15),
        total_customers=rows,
        user_id=user_id,
        file_url=dataset.file_uri,
    )

    segments = [
        CustomerSegment(
            id=f"seg-fallback-{i}-{stamp}",
            name=profile["name"],
            size=round_half_up(rows * share),
            percentage=share * 100,
            avg_ltv=avg_ltv,
            avg_engagement=profile["avg_engagement"],
            churn_risk=profile["churn_risk"],
            color=SEGMENT_COLORS[i],
        )
        for i, (profile, (share, avg_ltv)) in enumerate(zip(SEGMENT_PROFILES, FALLBACK_SPLIT))
    ]
    return prediction, segments


def simulate_generate_campaigns(segments: Sequence[CustomerSegment]) -> List[CampaignSuggestion]:
    """
    Map each campaign template onto its segment.

    A template whose segment index is missing targets the first segment.

    Args:
        segments: Segments from the latest analysis (at least one)

    Returns:
        One suggestion per template
    """
    if not segments:
        raise ValueError("No customer segments to target")

    stamp = timestamp_ms()
    now = datetime.now()
    suggestions = []
    for i, template in enumerate(CAMPAIGN_TEMPLATES):
        index = template["segment_index"]
        target = segments[index] if index < len(segments) else segments[0]
        suggestions.append(CampaignSuggestion(
            id=f"camp-{i}-{stamp}",
            title=template["title"],
            description=template["description"],
            target_segment=target.name,
            expected_impact=template["expected_impact"],
            difficulty=template["difficulty"],
            channels=list(template["channels"]),
            created_at=now,
            segment=index,
            subject=template["subject"],
            body=template["body"],
            cta=template["cta"],
        ))
    return suggestions


def fallback_campaigns() -> List[CampaignSuggestion]:
    """The loyalty and win-back campaigns, aimed at the default segment names."""
    stamp = timestamp_ms()
    return [
        CampaignSuggestion(
            id=f"camp-fallback-{i}-{stamp}",
            title=template["title"],
            description=description,
            target_segment=SEGMENT_PROFILES[i]["name"],
            expected_impact=template["expected_impact"],
            difficulty=template["difficulty"],
            channels=list(template["channels"]),
            segment=i,
            subject=template["subject"],
            body=template["body"],
            cta=template["cta"],
        )
        for i, (template, description) in enumerate(zip(CAMPAIGN_TEMPLATES, FALLBACK_CAMPAIGN_DESCRIPTIONS))
    ]
