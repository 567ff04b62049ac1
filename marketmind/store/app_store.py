"""
App Store
=========

Client state for datasets, analysis results and campaigns, and the actions
that move a dataset from upload to campaign export. Every action is a single
awaited call bounded by its own timeout.
"""

import asyncio
import json
import random
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from config import DATA_DIR, get_config
from marketmind.api.database import DatabaseManager, StorageError
from marketmind.api.schemas import (
    CampaignSuggestion,
    ChurnPrediction,
    CustomerSegment,
    Dataset,
    DatasetStatus,
)
from marketmind.data import DataLoader, mock_datasets_for
from marketmind.services.analysis import AnalysisService
from marketmind.services.auth import AuthenticationError
from marketmind.services.campaigns import CampaignService
from marketmind.utils import slugify, timestamp_ms
from .auth_store import AuthStore


class StoreError(Exception):
    """Base class for store action failures."""


class DatasetNotFoundError(StoreError):
    pass


class DatasetBusyError(StoreError):
    pass


class MissingAnalysisError(StoreError):
    pass


class StoreTimeoutError(StoreError):
    pass


class AppStore:
    """State container for the analysis workflow."""

    def __init__(
        self,
        auth_store: AuthStore,
        config: Optional[dict] = None,
        storage: Optional[DatabaseManager] = None,
        analysis_service: Optional[AnalysisService] = None,
        campaign_service: Optional[CampaignService] = None,
        data_loader: Optional[DataLoader] = None,
        rng: Optional[random.Random] = None
    ):
        """
        Initialize AppStore.

        Args:
            auth_store: Session holding the signed-in user
            config: Configuration dictionary
            storage: Storage backend; None runs in demo mode
            analysis_service: Service producing predictions
            campaign_service: Service producing and exporting campaigns
            data_loader: Reader for uploaded files
            rng: Random source for placeholder dataset counts
        """
        self.config = config or get_config()
        self.auth_store = auth_store
        self.storage = storage
        self.analysis = analysis_service or AnalysisService(self.config, storage=storage)
        self.campaigns = campaign_service or CampaignService(self.config)
        self.data_loader = data_loader or DataLoader()
        self.rng = rng or random.Random()

        store_config = self.config.get("store", {})
        self.analysis_timeout = store_config.get("analysis_timeout", 30)
        self.campaign_timeout = store_config.get("campaign_timeout", 20)
        self.export_timeout = store_config.get("export_timeout", 10)
        self.fetch_timeout = store_config.get("fetch_timeout", 15)
        self.processing_delay = store_config.get("processing_delay", 3)

        state_file = store_config.get("state_file")
        if state_file:
            state_path = Path(state_file)
            self.state_file = state_path if state_path.is_absolute() else DATA_DIR / state_path
        else:
            self.state_file = None

        # Data state
        self.datasets: List[Dataset] = []
        self.selected_dataset_id: Optional[str] = None

        # Analysis state
        self.churn_prediction: Optional[ChurnPrediction] = None
        self.customer_segments: List[CustomerSegment] = []
        self.campaign_suggestions: List[CampaignSuggestion] = []

        # UI state
        self.is_loading = False
        self.active_tab = "dashboard"
        self.error: Optional[str] = None

        self._processing_timers: Dict[str, asyncio.TimerHandle] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def get_dataset(self, dataset_id: str) -> Optional[Dataset]:
        return next((d for d in self.datasets if d.id == dataset_id), None)

    def _update_dataset(self, dataset_id: str, **changes):
        self.datasets = [
            d.model_copy(update=changes) if d.id == dataset_id else d
            for d in self.datasets
        ]

    def _fail(self, message: str):
        self.is_loading = False
        self.error = message

    # ------------------------------------------------------------------
    # Simple actions
    # ------------------------------------------------------------------

    def select_dataset(self, dataset_id: str):
        self.selected_dataset_id = dataset_id

    def set_active_tab(self, tab: str):
        self.active_tab = tab

    def clear_error(self):
        self.error = None

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload_dataset(
        self,
        name: str,
        description: str,
        file_size: float,
        file_uri: Optional[str] = None,
        content: Optional[bytes] = None
    ) -> Dataset:
        """
        Register a new dataset, storing its file when content is given.

        Args:
            name: Display name
            description: Free-text description
            file_size: Size of the file in bytes
            file_uri: Location of an existing local file
            content: Raw CSV bytes to upload

        Returns:
            The new dataset, auto-selected
        """
        self.is_loading = True
        self.error = None

        try:
            user_id = self.auth_store.user_id
            if not user_id:
                raise AuthenticationError("User not authenticated")

            if content is not None:
                counts = self.data_loader.profile(content)
                file_name = f"{timestamp_ms()}-{slugify(name)}.csv"
                dataset_id, file_uri = self._store_upload(content, file_name, user_id, {
                    "name": name,
                    "description": description,
                    "file_size": file_size,
                    **counts,
                })
            else:
                counts = self._profile_local_file(file_uri)
                dataset_id = str(timestamp_ms())

            dataset = Dataset(
                id=dataset_id,
                name=name,
                description=description,
                row_count=counts["row_count"],
                column_count=counts["column_count"],
                status=DatasetStatus.UPLOADED,
                file_size=file_size,
                file_uri=file_uri or None,
                user_id=user_id,
            )
        except Exception as e:
            logger.error(f"Upload error: {e}")
            self._fail(str(e) or "Failed to upload dataset")
            raise

        self.datasets = [*self.datasets, dataset]
        self.selected_dataset_id = dataset.id
        self.is_loading = False
        self._schedule_processed(dataset.id)
        return dataset

    def _store_upload(self, content: bytes, file_name: str, user_id: str, metadata: Dict):
        """Write the upload to storage; returns (dataset_id, file_uri)."""
        if self.storage is None:
            logger.info("Storage not initialized, simulating dataset upload")
            return f"demo-dataset-{timestamp_ms()}", None

        try:
            result = self.storage.upload_dataset(content, file_name, user_id, metadata)
            return result["dataset_id"], result["file_url"]
        except StorageError as e:
            logger.error(f"Error uploading dataset: {e}")
            return f"demo-dataset-{timestamp_ms()}", None

    def _profile_local_file(self, file_uri: Optional[str]) -> Dict[str, int]:
        if file_uri and Path(file_uri).is_file():
            return self.data_loader.profile(file_uri)
        # Placeholder counts for datasets registered without a readable file
        return {
            "row_count": self.rng.randint(1000, 10999),
            "column_count": self.rng.randint(5, 24),
        }

    def _schedule_processed(self, dataset_id: str):
        loop = asyncio.get_running_loop()
        self._processing_timers[dataset_id] = loop.call_later(
            self.processing_delay, self._mark_processed, dataset_id
        )

    def _mark_processed(self, dataset_id: str):
        self._processing_timers.pop(dataset_id, None)
        dataset = self.get_dataset(dataset_id)
        if dataset is not None and dataset.status == DatasetStatus.UPLOADED:
            self._update_dataset(dataset_id, status=DatasetStatus.PROCESSED)

    def _cancel_processed(self, dataset_id: str):
        timer = self._processing_timers.pop(dataset_id, None)
        if timer is not None:
            timer.cancel()

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_dataset(self, dataset_id: str):
        """Remove a dataset and any analysis results that belong to it."""
        self._cancel_processed(dataset_id)
        self.datasets = [d for d in self.datasets if d.id != dataset_id]

        if self.selected_dataset_id == dataset_id:
            self.selected_dataset_id = None

        if self.churn_prediction is not None and self.churn_prediction.dataset_id == dataset_id:
            self.churn_prediction = None
            self.customer_segments = []
            self.campaign_suggestions = []

        if self.storage is not None:
            try:
                self.storage.delete_dataset(dataset_id)
            except StorageError as e:
                logger.error(f"Error deleting dataset {dataset_id} from storage: {e}")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def run_analysis(self, dataset_id: str):
        """
        Analyse a dataset and merge the results into the store.

        Args:
            dataset_id: Dataset to analyse
        """
        self.is_loading = True
        self.error = None

        try:
            await asyncio.wait_for(self._run_analysis(dataset_id), timeout=self.analysis_timeout)
        except asyncio.TimeoutError:
            message = "Analysis timed out. Please try again."
            logger.error(f"{message} (dataset {dataset_id})")
            self._update_dataset(dataset_id, status=DatasetStatus.ERROR)
            self._fail(message)
            raise StoreTimeoutError(message)
        except (DatasetNotFoundError, DatasetBusyError) as e:
            logger.error(f"Analysis error: {e}")
            self._fail(str(e))
            raise
        except (StorageError, ValueError) as e:
            logger.error(f"Analysis error: {e}")
            self._update_dataset(dataset_id, status=DatasetStatus.ERROR)
            self._fail(str(e) or "Failed to run analysis")
            raise
        except Exception as e:
            logger.exception(f"Unexpected analysis error: {e}")
            self._update_dataset(dataset_id, status=DatasetStatus.ERROR)
            self._fail("Failed to run analysis")
            raise

    async def _run_analysis(self, dataset_id: str):
        dataset = self.get_dataset(dataset_id)
        if dataset is None:
            raise DatasetNotFoundError("Dataset not found")

        if dataset.status == DatasetStatus.PROCESSING:
            raise DatasetBusyError("Dataset is still processing. Please wait until it is ready.")

        self._cancel_processed(dataset_id)
        self._update_dataset(dataset_id, status=DatasetStatus.PROCESSING)

        prediction, segments = await self.analysis.process_dataset(dataset, self.auth_store.user_id)

        if self.churn_prediction is None or self.churn_prediction.id != prediction.id:
            self.campaign_suggestions = []
        self.churn_prediction = prediction
        self.customer_segments = segments
        self.is_loading = False
        self._update_dataset(dataset_id, status=DatasetStatus.PROCESSED, prediction_id=prediction.id)

        self._ensure_linked(dataset_id, prediction.id)

    def _ensure_linked(self, dataset_id: str, prediction_id: str):
        """Make sure the stored dataset points at the latest prediction."""
        if self.storage is None or self.auth_store.user_id is None:
            return
        try:
            stored = self.storage.get_dataset(dataset_id)
            if stored is None or stored.prediction_id == prediction_id:
                return
            logger.info(f"Dataset {dataset_id} not properly linked to prediction {prediction_id}, fixing...")
            self.storage.update_dataset_with_prediction(dataset_id, prediction_id)
        except StorageError as e:
            logger.error(f"Error linking dataset to prediction: {e}")

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    async def generate_campaigns(self) -> List[CampaignSuggestion]:
        """
        Suggest campaigns for the current segments and persist them.

        Returns:
            The generated suggestions
        """
        self.is_loading = True
        self.error = None

        try:
            if not self.customer_segments:
                raise MissingAnalysisError("No customer segments available")
            if self.churn_prediction is None:
                raise MissingAnalysisError("No churn prediction available")

            suggestions = await asyncio.wait_for(
                self.campaigns.generate_campaigns(self.customer_segments),
                timeout=self.campaign_timeout,
            )
        except asyncio.TimeoutError:
            message = "Campaign generation timed out. Please try again."
            logger.error(message)
            self._fail(message)
            raise StoreTimeoutError(message)
        except MissingAnalysisError as e:
            logger.error(f"Campaign generation error: {e}")
            self._fail(str(e))
            raise

        self.campaign_suggestions = suggestions
        self.is_loading = False
        self._store_campaigns(suggestions)
        return suggestions

    def _store_campaigns(self, suggestions: List[CampaignSuggestion]):
        user_id = self.auth_store.user_id
        prediction = self.churn_prediction
        if self.storage is None or not user_id:
            return

        try:
            result = self.storage.store_dataset_result(
                user_id,
                prediction.dataset_id,
                prediction.file_url,
                prediction,
                self.customer_segments,
                suggestions,
            )
        except StorageError as e:
            logger.error(f"Error storing campaign suggestions after generation: {e}")
            return

        if result.prediction_id != prediction.id:
            self.churn_prediction = prediction.model_copy(update={"id": result.prediction_id})
            self._update_dataset(prediction.dataset_id, prediction_id=result.prediction_id)
        logger.info("Campaign suggestions stored successfully after generation")

    async def export_campaign(self, campaign_id: str) -> bool:
        """
        Export one suggested campaign to the CRM.

        Returns:
            True on success; otherwise `error` holds the reason
        """
        self.is_loading = True
        self.error = None

        campaign = next((c for c in self.campaign_suggestions if c.id == campaign_id), None)
        if campaign is None:
            self._fail(f"Campaign not found: {campaign_id}")
            return False

        try:
            result = await asyncio.wait_for(
                self.campaigns.export_campaign_to_crm(campaign),
                timeout=self.export_timeout,
            )
        except asyncio.TimeoutError:
            self._fail("Export timed out. Please try again.")
            return False

        self.is_loading = False
        if not result.success:
            self.error = result.message
        return result.success

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def fetch_user_datasets(self):
        """Load the signed-in user's datasets, falling back to demo datasets."""
        user_id = self.auth_store.user_id
        if not user_id:
            self.datasets = []
            self.is_loading = False
            return

        self.is_loading = True
        self.error = None

        if self.storage is None:
            logger.info("Storage not initialized, returning mock datasets")
            self.datasets = mock_datasets_for(user_id)
            self.is_loading = False
            return

        try:
            self.datasets = await asyncio.wait_for(
                asyncio.to_thread(self.storage.get_user_datasets, user_id),
                timeout=self.fetch_timeout,
            )
            self.is_loading = False
        except asyncio.TimeoutError:
            logger.error("Fetching datasets timed out")
            self.datasets = mock_datasets_for(user_id)
            self._fail("Fetching datasets timed out. Please try again.")
        except StorageError as e:
            logger.error(f"Error fetching datasets: {e}")
            self.datasets = mock_datasets_for(user_id)
            self._fail(str(e) or "Failed to fetch datasets")

    def clear_session(self):
        """Forget everything loaded for the signed-in user."""
        for dataset_id in list(self._processing_timers):
            self._cancel_processed(dataset_id)
        self.datasets = []
        self.selected_dataset_id = None
        self.churn_prediction = None
        self.customer_segments = []
        self.campaign_suggestions = []
        self.is_loading = False
        self.error = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_state(self):
        """Persist the selected dataset id."""
        if self.state_file is None:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self.state_file.write_text(json.dumps({"selected_dataset_id": self.selected_dataset_id}))

    def load_state(self):
        """Restore the selected dataset id, if a state file exists."""
        if self.state_file is None or not self.state_file.exists():
            return
        try:
            state = json.loads(self.state_file.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {self.state_file}: {e}")
            return
        self.selected_dataset_id = state.get("selected_dataset_id")
