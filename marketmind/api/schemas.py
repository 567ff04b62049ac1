"""
API Schemas (Pydantic Models)
=============================

Domain records shared by the store, the services and the HTTP API, plus the
request and response bodies of the API itself.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


SEGMENT_COLORS = ["#4A6FFF", "#FF6B6B", "#FFC107", "#4CAF50"]
CAMPAIGN_CHANNELS = ["email", "sms", "push", "social"]


class DatasetStatus(str, Enum):
    """Lifecycle of an uploaded dataset."""

    UPLOADED = "uploaded"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"


class Dataset(BaseModel):
    """Schema for an uploaded customer dataset."""

    id: str
    name: str
    description: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    row_count: int = Field(0, ge=0, description="Number of customer rows")
    column_count: int = Field(0, ge=0, description="Number of columns")
    status: DatasetStatus = DatasetStatus.UPLOADED
    file_size: float = Field(0, ge=0, description="File size in bytes")
    file_uri: Optional[str] = Field(None, description="Location of the dataset file")
    user_id: Optional[str] = None
    prediction_id: Optional[str] = Field(None, description="Latest prediction for this dataset")


class ChurnPrediction(BaseModel):
    """Schema for a churn prediction summary over a dataset."""

    id: str
    dataset_id: str
    created_at: datetime = Field(default_factory=datetime.now)
    accuracy: float = Field(..., ge=0, le=1)
    precision: float = Field(..., ge=0, le=1)
    recall: float = Field(..., ge=0, le=1)
    f1_score: float = Field(..., ge=0, le=1)
    churn_rate: float = Field(..., ge=0, le=1)
    predicted_churn_count: int = Field(..., ge=0)
    total_customers: int = Field(..., ge=0)
    user_id: Optional[str] = None
    file_url: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "pred-1",
                "dataset_id": "1",
                "created_at": "2023-06-16T14:30:00",
                "accuracy": 0.87,
                "precision": 0.83,
                "recall": 0.79,
                "f1_score": 0.81,
                "churn_rate": 0.15,
                "predicted_churn_count": 786,
                "total_customers": 5243,
                "user_id": "user-1",
                "file_url": "https://example.com/datasets/1.csv"
            }
        }


class CustomerSegment(BaseModel):
    """Schema for a behavioural customer segment."""

    id: str
    name: str
    size: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0, description="Share of all customers, one decimal")
    avg_ltv: float
    avg_engagement: float
    churn_risk: float
    color: str

    class Config:
        json_schema_extra = {
            "example": {
                "id": "seg-1",
                "name": "High-Value Loyalists",
                "size": 1573,
                "percentage": 30.0,
                "avg_ltv": 950,
                "avg_engagement": 0.89,
                "churn_risk": 0.05,
                "color": "#4A6FFF"
            }
        }


class CampaignSuggestion(BaseModel):
    """Schema for an email campaign suggested for one segment."""

    id: str
    title: str
    description: str
    target_segment: str = Field(..., description="Name of the targeted segment")
    expected_impact: float
    difficulty: str
    channels: List[str]
    created_at: datetime = Field(default_factory=datetime.now)
    segment: Optional[int] = Field(None, description="Index of the targeted segment")
    subject: Optional[str] = None
    body: Optional[str] = None
    cta: Optional[str] = None

    @field_validator("difficulty")
    @classmethod
    def validate_difficulty(cls, v):
        allowed = ["easy", "medium", "hard"]
        if v not in allowed:
            raise ValueError(f"difficulty must be one of {allowed}")
        return v

    @field_validator("channels")
    @classmethod
    def validate_channels(cls, v):
        unknown = [c for c in v if c not in CAMPAIGN_CHANNELS]
        if unknown:
            raise ValueError(f"channels must be drawn from {CAMPAIGN_CHANNELS}, got {unknown}")
        return v


class UserProfile(BaseModel):
    """Schema for the signed-in user's profile."""

    id: str
    name: str
    email: str
    company: str = "Not set"
    plan: str = "free"
    photo_url: Optional[str] = None

    @field_validator("plan")
    @classmethod
    def validate_plan(cls, v):
        allowed = ["free", "pro", "enterprise"]
        if v not in allowed:
            raise ValueError(f"plan must be one of {allowed}")
        return v


# ---------------------------------------------------------------------------
# API request / response bodies
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Schema for email/password sign-in."""

    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class RegisterRequest(LoginRequest):
    """Schema for account registration."""

    name: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    """Schema for partial profile updates; unset fields are left alone."""

    name: Optional[str] = None
    company: Optional[str] = None
    plan: Optional[str] = None
    photo_url: Optional[str] = None


class AnalysisResponse(BaseModel):
    """Schema for the current analysis results held by the store."""

    dataset_id: Optional[str]
    churn_prediction: Optional[ChurnPrediction]
    customer_segments: List[CustomerSegment]
    campaign_suggestions: List[CampaignSuggestion]


class ExportResponse(BaseModel):
    """Schema for a CRM export outcome."""

    campaign_id: str
    success: bool
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Schema for health check response."""

    status: str
    authenticated: bool
    storage_connected: bool
    ml_api_enabled: bool
    timestamp: datetime


class StatusMessage(BaseModel):
    """Generic message body."""

    message: str
    details: Optional[Dict] = None
