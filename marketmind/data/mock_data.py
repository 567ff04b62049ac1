"""Demo records shown when storage is unavailable."""

from datetime import datetime
from typing import List

from marketmind.api.schemas import Dataset, DatasetStatus

MB = 1024 * 1024

MOCK_DATASETS = [
    Dataset(
        id="1",
        name="Q2 Customer Data",
        description="Quarterly customer behavior data including purchases, logins, and support tickets",
        created_at=datetime(2023, 6, 15, 10, 30),
        updated_at=datetime(2023, 6, 15, 10, 30),
        row_count=5243,
        column_count=18,
        status=DatasetStatus.PROCESSED,
        file_size=2.4 * MB,
        prediction_id="pred-1",
    ),
    Dataset(
        id="2",
        name="Website Analytics",
        description="User behavior from website including page views, time on site, and conversion events",
        created_at=datetime(2023, 5, 22, 14, 15),
        updated_at=datetime(2023, 5, 22, 14, 15),
        row_count=12876,
        column_count=24,
        status=DatasetStatus.PROCESSED,
        file_size=4.8 * MB,
        prediction_id="pred-2",
    ),
    Dataset(
        id="3",
        name="Marketing Campaign Results",
        description="Results from Q1 email and social media campaigns including opens, clicks, and conversions",
        created_at=datetime(2023, 4, 10, 9, 45),
        updated_at=datetime(2023, 4, 10, 9, 45),
        row_count=3567,
        column_count=15,
        status=DatasetStatus.PROCESSING,
        file_size=1.7 * MB,
    ),
]


def mock_datasets_for(user_id: str) -> List[Dataset]:
    """Copies of the demo datasets owned by `user_id`, all marked processed."""
    return [
        d.model_copy(update={"user_id": user_id, "status": DatasetStatus.PROCESSED})
        for d in MOCK_DATASETS
    ]
