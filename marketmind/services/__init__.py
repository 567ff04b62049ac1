"""Services module: ML client, simulation fallback, analysis and campaigns."""

from .analysis import AnalysisService
from .auth import AuthenticationError, AuthService
from .campaigns import CampaignService, ExportResult
from .ml_client import MLApiClient, MLApiError, transform_response

__all__ = [
    "AnalysisService",
    "AuthenticationError",
    "AuthService",
    "CampaignService",
    "ExportResult",
    "MLApiClient",
    "MLApiError",
    "transform_response",
]
