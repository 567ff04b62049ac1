"""
ML API Client
=============

HTTP client for the remote churn-prediction and segmentation service, and the
mapping from its JSON payload onto the domain models.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import httpx
from loguru import logger

from config import get_config
from marketmind.api.schemas import (
    SEGMENT_COLORS,
    ChurnPrediction,
    CustomerSegment,
    Dataset,
)
from marketmind.utils import round_half_up, safe_divide, timestamp_ms


DEFAULT_METRICS = {
    "model_accuracy": 0.85,
    "model_precision": 0.83,
    "model_recall": 0.79,
    "model_f1": 0.81,
    "avg_churn": 0.15,
}


class MLApiError(Exception):
    """Raised when the ML service rejects a request or returns an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _value(mapping: Optional[Dict], key: str, default):
    """Look up `key`, using `default` when the mapping or the value is missing."""
    if not isinstance(mapping, dict):
        return default
    value = mapping.get(key)
    return default if value is None else value


def transform_response(
    data: Dict,
    dataset: Dataset,
    user_id: Optional[str] = None
) -> Tuple[ChurnPrediction, List[CustomerSegment]]:
    """
    Convert an ML service response into a prediction and its segments.

    Args:
        data: Decoded JSON response
        dataset: Dataset the response belongs to
        user_id: Owner recorded on the prediction

    Returns:
        Tuple of (prediction, segments)
    """
    if not isinstance(data, dict):
        raise MLApiError(f"Unexpected response payload: {type(data).__name__}")

    summary = data.get("summary") or {}
    if not isinstance(summary, dict):
        raise MLApiError(f"Unexpected summary in response: {type(summary).__name__}")
    segment_counts = summary.get("segment_counts") or {}
    if not isinstance(segment_counts, dict):
        raise MLApiError(f"Unexpected segment_counts in response: {type(segment_counts).__name__}")

    try:
        return _build_results(data, summary, segment_counts, dataset, user_id)
    except (TypeError, AttributeError) as e:
        raise MLApiError(f"Malformed response payload: {e}") from e


def _build_results(
    data: Dict,
    summary: Dict,
    segment_counts: Dict,
    dataset: Dataset,
    user_id: Optional[str]
) -> Tuple[ChurnPrediction, List[CustomerSegment]]:
    rows = dataset.row_count
    stamp = timestamp_ms()

    churn_rate = float(_value(summary, "avg_churn", DEFAULT_METRICS["avg_churn"]))
    prediction = ChurnPrediction(
        id=f"pred-{stamp}",
        dataset_id=dataset.id,
        accuracy=float(_value(summary, "model_accuracy", DEFAULT_METRICS["model_accuracy"])),
        precision=float(_value(summary, "model_precision", DEFAULT_METRICS["model_precision"])),
        recall=float(_value(summary, "model_recall", DEFAULT_METRICS["model_recall"])),
        f1_score=float(_value(summary, "model_f1", DEFAULT_METRICS["model_f1"])),
        churn_rate=churn_rate,
        predicted_churn_count=round_half_up(rows * churn_rate),
        total_customers=rows,
        user_id=user_id,
        file_url=dataset.file_uri,
    )

    names = data.get("segment_names") or {}
    metrics = data.get("segment_metrics") or {}
    segments = []
    for i, (segment_id, count) in enumerate(segment_counts.items()):
        size = int(count)
        segment_metrics = metrics.get(segment_id) if isinstance(metrics, dict) else None
        segments.append(CustomerSegment(
            id=f"seg-{segment_id}-{stamp}",
            name=_value(names, segment_id, f"Segment {segment_id}"),
            size=size,
            percentage=round(safe_divide(size, rows) * 100, 1),
            avg_ltv=_value(segment_metrics, "avg_ltv", 500 - i * 100),
            avg_engagement=_value(segment_metrics, "avg_engagement", round(0.9 - i * 0.2, 2)),
            churn_risk=_value(segment_metrics, "churn_risk", round(0.1 + i * 0.2, 2)),
            color=SEGMENT_COLORS[i % len(SEGMENT_COLORS)],
        ))

    return prediction, segments


class MLApiClient:
    """Async client for the prediction endpoint."""

    def __init__(
        self,
        config: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize MLApiClient.

        Args:
            config: Configuration dictionary
            transport: Optional httpx transport, used to stub the service
        """
        self.config = config or get_config()
        api_config = self.config.get("ml_api", {})
        self.url = api_config.get("url", "https://marketmind-api.onrender.com/predict")
        self.timeout = api_config.get("timeout", 25)
        self.enabled = api_config.get("enabled", True)
        self.transport = transport

    async def predict(self, file_path: str) -> Dict:
        """
        Upload a dataset file and return the decoded response.

        Args:
            file_path: Local path of the CSV file

        Returns:
            Response JSON
        """
        path = Path(file_path)
        if not path.is_file():
            raise MLApiError(f"Dataset file not found: {file_path}")

        logger.info(f"Sending request to ML API: {self.url}")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self.url,
                files={"file": ("dataset.csv", path.read_bytes(), "text/csv")},
                headers={"Accept": "application/json"},
            )

        if response.status_code >= 400:
            logger.error(f"API request failed: {response.status_code} {response.text}")
            raise MLApiError(
                f"API request failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MLApiError(f"Invalid JSON from ML API: {e}") from e

        logger.debug(f"Received response from ML API: {data}")
        return data
