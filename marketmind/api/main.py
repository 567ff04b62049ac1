"""
FastAPI Main Application
========================

REST API over a single MarketMind client session: sign-in, dataset upload,
churn analysis and campaign suggestions.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import get_config
from marketmind.data import DatasetValidationError
from marketmind.services import AnalysisService, AuthenticationError, AuthService, CampaignService, MLApiClient
from marketmind.store import (
    AppStore,
    AuthStore,
    DatasetBusyError,
    DatasetNotFoundError,
    MissingAnalysisError,
    StoreError,
    StoreTimeoutError,
)
from .database import DatabaseManager, StorageError
from .schemas import (
    AnalysisResponse,
    CampaignSuggestion,
    Dataset,
    ExportResponse,
    HealthResponse,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    StatusMessage,
    UserProfile,
)


def create_app(
    config: Optional[dict] = None,
    storage: Optional[DatabaseManager] = None,
    ml_client: Optional[MLApiClient] = None,
    campaign_service: Optional[CampaignService] = None
) -> FastAPI:
    """
    Build the API application and its session stores.

    Args:
        config: Configuration dictionary
        storage: Storage backend; built from config when omitted
        ml_client: Client for the prediction endpoint
        campaign_service: Campaign generator and CRM exporter

    Returns:
        FastAPI application
    """
    config = config or get_config()
    if storage is None:
        storage = DatabaseManager.from_config(config)

    auth_store = AuthStore(AuthService(config, storage=storage))
    app_store = AppStore(
        auth_store,
        config=config,
        storage=storage,
        analysis_service=AnalysisService(config, storage=storage, ml_client=ml_client),
        campaign_service=campaign_service or CampaignService(config),
    )

    app_config = config.get("app", {})
    api = FastAPI(
        title="MarketMind API",
        description="Customer churn analysis and campaign suggestions",
        version=app_config.get("version", "1.0.0"),
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Add CORS middleware
    api.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api.state.config = config
    api.state.storage = storage
    api.state.auth_store = auth_store
    api.state.app_store = app_store

    @api.on_event("startup")
    async def startup_event():
        """Execute on application startup."""
        auth_store.initialize_auth()
        app_store.load_state()
        logger.info("MarketMind API started")

    @api.on_event("shutdown")
    async def shutdown_event():
        """Persist session state on shutdown."""
        app_store.save_state()

    _register_routes(api)
    return api


def get_auth_store(request: Request) -> AuthStore:
    return request.app.state.auth_store


def get_app_store(request: Request) -> AppStore:
    return request.app.state.app_store


def require_user(auth_store: AuthStore = Depends(get_auth_store)) -> UserProfile:
    """Reject requests when nobody is signed in."""
    if not auth_store.is_authenticated:
        raise HTTPException(status_code=401, detail="User not authenticated")
    return auth_store.profile


def _http_error(e: Exception) -> HTTPException:
    """Map store and service errors onto HTTP status codes."""
    if isinstance(e, AuthenticationError):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, DatasetNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (DatasetBusyError, MissingAnalysisError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, DatasetValidationError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, StoreTimeoutError):
        return HTTPException(status_code=504, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _register_routes(api: FastAPI):

    @api.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "message": "MarketMind API",
            "version": api.version,
            "docs": "/docs"
        }

    @api.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Check API health status."""
        storage = request.app.state.storage
        return HealthResponse(
            status="healthy",
            authenticated=request.app.state.auth_store.is_authenticated,
            storage_connected=storage is not None and storage.ping(),
            ml_api_enabled=request.app.state.app_store.analysis.ml_client.enabled,
            timestamp=datetime.now()
        )

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    @api.post("/auth/login", response_model=UserProfile, tags=["Auth"])
    async def login(body: LoginRequest, auth_store: AuthStore = Depends(get_auth_store)):
        """Sign in with email and password."""
        if not auth_store.login(body.email, body.password):
            raise HTTPException(status_code=401, detail=auth_store.error or "Login failed")
        return auth_store.profile

    @api.post("/auth/register", response_model=UserProfile, status_code=201, tags=["Auth"])
    async def register(body: RegisterRequest, auth_store: AuthStore = Depends(get_auth_store)):
        """Create an account and sign it in."""
        if not auth_store.register(body.email, body.password, body.name):
            raise HTTPException(status_code=400, detail=auth_store.error or "Registration failed")
        return auth_store.profile

    @api.post("/auth/logout", response_model=StatusMessage, tags=["Auth"])
    async def logout(
        auth_store: AuthStore = Depends(get_auth_store),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Sign out and forget the session's datasets and results."""
        auth_store.logout()
        app_store.clear_session()
        return StatusMessage(message="Signed out")

    @api.get("/auth/me", response_model=UserProfile, tags=["Auth"])
    async def me(profile: UserProfile = Depends(require_user)):
        """Current user's profile."""
        return profile

    @api.patch("/auth/me", response_model=UserProfile, tags=["Auth"])
    async def update_me(
        body: ProfileUpdate,
        profile: UserProfile = Depends(require_user),
        auth_store: AuthStore = Depends(get_auth_store)
    ):
        """Update the current user's profile."""
        if not auth_store.update_user_profile(**body.model_dump()):
            raise HTTPException(status_code=400, detail=auth_store.error)
        return auth_store.profile

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    @api.get("/datasets", response_model=List[Dataset], tags=["Datasets"])
    async def list_datasets(
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Fetch the current user's datasets."""
        await app_store.fetch_user_datasets()
        return app_store.datasets

    @api.post("/datasets", response_model=Dataset, status_code=201, tags=["Datasets"])
    async def upload_dataset(
        name: str = Form(...),
        description: str = Form(""),
        file: UploadFile = File(...),
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Upload a CSV dataset."""
        content = await file.read()
        try:
            return await app_store.upload_dataset(name, description, len(content), content=content)
        except (AuthenticationError, DatasetValidationError) as e:
            raise _http_error(e)

    @api.delete("/datasets/{dataset_id}", response_model=StatusMessage, tags=["Datasets"])
    async def delete_dataset(
        dataset_id: str,
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Delete a dataset and its results."""
        if app_store.get_dataset(dataset_id) is None:
            raise HTTPException(status_code=404, detail="Dataset not found")
        app_store.delete_dataset(dataset_id)
        return StatusMessage(message=f"Dataset {dataset_id} deleted")

    @api.post("/datasets/{dataset_id}/select", response_model=StatusMessage, tags=["Datasets"])
    async def select_dataset(
        dataset_id: str,
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Make a dataset the selected one."""
        if app_store.get_dataset(dataset_id) is None:
            raise HTTPException(status_code=404, detail="Dataset not found")
        app_store.select_dataset(dataset_id)
        return StatusMessage(message=f"Dataset {dataset_id} selected")

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    @api.post("/datasets/{dataset_id}/analysis", response_model=AnalysisResponse, tags=["Analysis"])
    async def run_analysis(
        dataset_id: str,
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Run churn prediction and segmentation on a dataset."""
        try:
            await app_store.run_analysis(dataset_id)
        except (StoreError, StorageError, ValueError) as e:
            raise _http_error(e)
        return _analysis_response(app_store)

    @api.get("/analysis", response_model=AnalysisResponse, tags=["Analysis"])
    async def current_analysis(
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Latest analysis results."""
        return _analysis_response(app_store)

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    @api.post("/campaigns/generate", response_model=List[CampaignSuggestion], tags=["Campaigns"])
    async def generate_campaigns(
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Suggest campaigns for the current segments."""
        try:
            return await app_store.generate_campaigns()
        except (MissingAnalysisError, StoreTimeoutError) as e:
            raise _http_error(e)

    @api.get("/campaigns", response_model=List[CampaignSuggestion], tags=["Campaigns"])
    async def list_campaigns(
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Campaigns suggested for the current analysis."""
        return app_store.campaign_suggestions

    @api.post("/campaigns/{campaign_id}/export", response_model=ExportResponse, tags=["Campaigns"])
    async def export_campaign(
        campaign_id: str,
        profile: UserProfile = Depends(require_user),
        app_store: AppStore = Depends(get_app_store)
    ):
        """Export a campaign to the CRM."""
        success = await app_store.export_campaign(campaign_id)
        return ExportResponse(
            campaign_id=campaign_id,
            success=success,
            message=None if success else app_store.error,
        )


def _analysis_response(app_store: AppStore) -> AnalysisResponse:
    prediction = app_store.churn_prediction
    return AnalysisResponse(
        dataset_id=prediction.dataset_id if prediction else None,
        churn_prediction=prediction,
        customer_segments=app_store.customer_segments,
        campaign_suggestions=app_store.campaign_suggestions,
    )


app = create_app()


# Run with: uvicorn marketmind.api.main:app --reload
if __name__ == "__main__":
    import uvicorn

    config = get_config()
    api_config = config.get("api", {})

    uvicorn.run(
        "marketmind.api.main:app",
        host=api_config.get("host", "0.0.0.0"),
        port=api_config.get("port", 8000),
        reload=api_config.get("reload", False)
    )
