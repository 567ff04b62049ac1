"""Data module for loading uploaded datasets and demo records."""

from .data_loader import DataLoader, DatasetValidationError
from .mock_data import MOCK_DATASETS, mock_datasets_for

__all__ = ["DataLoader", "DatasetValidationError", "MOCK_DATASETS", "mock_datasets_for"]
