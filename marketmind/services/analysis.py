"""
Analysis Service
================

Runs a dataset through the remote ML service, falls back to the local
simulation when the service cannot be used, and persists the results.
"""

import asyncio
from typing import List, Optional, Tuple

import httpx
from loguru import logger

from config import get_config
from marketmind.api.database import DatabaseManager, StorageError
from marketmind.api.schemas import ChurnPrediction, CustomerSegment, Dataset
from .ml_client import MLApiClient, MLApiError, transform_response
from .simulation import fallback_process_dataset, simulate_process_dataset


AnalysisResult = Tuple[ChurnPrediction, List[CustomerSegment]]


class AnalysisService:
    """Produce churn predictions and segments for datasets."""

    def __init__(
        self,
        config: Optional[dict] = None,
        storage: Optional[DatabaseManager] = None,
        ml_client: Optional[MLApiClient] = None
    ):
        """
        Initialize AnalysisService.

        Args:
            config: Configuration dictionary
            storage: Storage backend; None runs without persistence
            ml_client: Client for the prediction endpoint
        """
        self.config = config or get_config()
        self.storage = storage
        self.ml_client = ml_client or MLApiClient(self.config)
        self.simulation_delay = self.config.get("simulation", {}).get("analysis_delay", 3)

    async def process_dataset(self, dataset: Dataset, user_id: Optional[str] = None) -> AnalysisResult:
        """
        Analyse a dataset.

        Args:
            dataset: Dataset to analyse
            user_id: Signed-in user; results are stored only when set

        Returns:
            Tuple of (prediction, segments)
        """
        if not self.ml_client.enabled:
            logger.info("ML API disabled, using simulated analysis")
            prediction, segments = await self.simulate(dataset, user_id)
        elif not dataset.file_uri:
            logger.info("Dataset file URI is missing, using simulation")
            prediction, segments = await self.simulate(dataset, user_id)
        else:
            try:
                data = await self.ml_client.predict(dataset.file_uri)
                prediction, segments = transform_response(data, dataset, user_id)
            except (MLApiError, httpx.HTTPError, ValueError) as e:
                logger.error(f"Error in API call: {e}")
                logger.info("Falling back to simulated ML API")
                prediction, segments = await self.simulate(dataset, user_id)

        if user_id:
            prediction = self.store_results(dataset, user_id, prediction, segments)

        return prediction, segments

    async def simulate(self, dataset: Dataset, user_id: Optional[str] = None) -> AnalysisResult:
        """Simulated analysis after the configured delay."""
        if self.simulation_delay:
            await asyncio.sleep(self.simulation_delay)
        try:
            return simulate_process_dataset(dataset, user_id)
        except ValueError as e:
            logger.error(f"Error in simulated processing: {e}")
            return fallback_process_dataset(dataset, user_id)

    def store_results(
        self,
        dataset: Dataset,
        user_id: str,
        prediction: ChurnPrediction,
        segments: List[CustomerSegment]
    ) -> ChurnPrediction:
        """
        Persist results and adopt the stored prediction id.

        Storage failures are logged and the unsaved prediction is returned.
        """
        if self.storage is None:
            logger.info(f"Storage not initialized, simulating prediction storage for dataset {dataset.id}")
            return prediction

        try:
            result = self.storage.store_dataset_result(
                user_id,
                dataset.id,
                dataset.file_uri,
                prediction,
                segments,
            )
            prediction = prediction.model_copy(update={"id": result.prediction_id})

            if not result.dataset_linked:
                logger.info("Attempting to update dataset with prediction ID again...")
                self.storage.update_dataset_with_prediction(dataset.id, result.prediction_id)

            logger.info("Dataset results stored successfully")
        except StorageError as e:
            logger.error(f"Error storing dataset results: {e}")

        return prediction
