"""FastAPI backend module. The application lives in `marketmind.api.main`."""

from .schemas import CampaignSuggestion, ChurnPrediction, CustomerSegment, Dataset, DatasetStatus

__all__ = ["CampaignSuggestion", "ChurnPrediction", "CustomerSegment", "Dataset", "DatasetStatus"]
