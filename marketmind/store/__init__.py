"""Client state containers."""

from .app_store import (
    AppStore,
    DatasetBusyError,
    DatasetNotFoundError,
    MissingAnalysisError,
    StoreError,
    StoreTimeoutError,
)
from .auth_store import AuthStore

__all__ = [
    "AppStore",
    "AuthStore",
    "DatasetBusyError",
    "DatasetNotFoundError",
    "MissingAnalysisError",
    "StoreError",
    "StoreTimeoutError",
]
