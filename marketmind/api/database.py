"""
Database Module
===============

SQLAlchemy storage backend for users, uploaded datasets and analysis results.
Dataset files are written to a per-user upload directory next to the database.
"""

import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from loguru import logger
from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    Float,
    String,
    DateTime,
    JSON,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from config import DATA_DIR, UPLOAD_DIR
from .schemas import (
    CampaignSuggestion,
    ChurnPrediction,
    CustomerSegment,
    Dataset,
    DatasetStatus,
    UserProfile,
)


DEFAULT_DATABASE_URL = f"sqlite:///{DATA_DIR}/marketmind.db"
DEFAULT_CTA = "Learn More"

# Base class for models
Base = declarative_base()


class StorageError(Exception):
    """Raised when the storage backend cannot complete an operation."""


def _new_id() -> str:
    return uuid.uuid4().hex


class UserRecord(Base):
    """Database model for user documents."""

    __tablename__ = "users"

    uid = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)
    company = Column(String, nullable=True)
    plan = Column(String, default="free")
    photo_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_profile(self) -> UserProfile:
        """Convert record to a user profile."""
        return UserProfile(
            id=self.uid,
            name=self.display_name or "User",
            email=self.email,
            company=self.company or "Not set",
            plan=self.plan or "free",
            photo_url=self.photo_url or None,
        )


class DatasetRecord(Base):
    """Database model for uploaded datasets."""

    __tablename__ = "datasets"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, index=True, nullable=False)
    dataset_name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    file_url = Column(String, nullable=True)
    status = Column(String, default=DatasetStatus.UPLOADED.value)
    row_count = Column(Integer, default=0)
    column_count = Column(Integer, default=0)
    file_size = Column(Float, default=0)
    prediction_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dataset(self) -> Dataset:
        """Convert record to a Dataset model."""
        now = datetime.now()
        return Dataset(
            id=self.id,
            name=self.dataset_name,
            description=self.description or "",
            created_at=self.created_at or now,
            updated_at=self.updated_at or now,
            row_count=self.row_count or 0,
            column_count=self.column_count or 0,
            status=self.status or DatasetStatus.UPLOADED.value,
            file_size=self.file_size or 0,
            file_uri=self.file_url,
            user_id=self.user_id,
            prediction_id=self.prediction_id,
        )


class PredictionRecord(Base):
    """Database model for stored analysis results."""

    __tablename__ = "predictions"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, index=True, nullable=False)
    dataset_id = Column(String, index=True, nullable=False)
    file_url = Column(String, nullable=True)
    churn_rate = Column(Float, nullable=False)
    segments = Column(JSON, nullable=True)
    segment_details = Column(JSON, nullable=True)
    suggestions = Column(JSON, nullable=True)
    accuracy = Column(Float, nullable=True)
    precision = Column(Float, nullable=True)
    recall = Column(Float, nullable=True)
    f1_score = Column(Float, nullable=True)
    predicted_churn_count = Column(Integer, nullable=True)
    total_customers = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self) -> Dict:
        """Convert record to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "dataset_id": self.dataset_id,
            "file_url": self.file_url,
            "churn_rate": self.churn_rate,
            "segments": self.segments,
            "segment_details": self.segment_details,
            "suggestions": self.suggestions,
            "accuracy": self.accuracy,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "predicted_churn_count": self.predicted_churn_count,
            "total_customers": self.total_customers,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class StoreResult:
    """Outcome of persisting analysis results."""

    prediction_id: str
    dataset_linked: bool = True
    error: Optional[str] = None


def _segment_documents(segments: Sequence[CustomerSegment]) -> List[Dict]:
    return [
        {
            "name": s.name,
            "size": s.size,
            "percentage": s.percentage,
            "avg_ltv": s.avg_ltv,
            "avg_engagement": s.avg_engagement,
            "churn_risk": s.churn_risk,
            "color": s.color,
        }
        for s in segments
    ]


def _suggestion_documents(
    suggestions: Sequence[CampaignSuggestion],
    segments: Sequence[CustomerSegment]
) -> List[Dict]:
    names = [s.name for s in segments]
    return [
        {
            "segment": names.index(c.target_segment) if c.target_segment in names else -1,
            "subject": c.title,
            "body": c.description,
            "cta": c.cta or DEFAULT_CTA,
        }
        for c in suggestions
    ]


class DatabaseManager:
    """Manager class for storage operations."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        upload_dir: Optional[Path] = None,
        echo: bool = False
    ):
        """
        Initialize DatabaseManager.

        Args:
            database_url: SQLAlchemy URL; defaults to a SQLite file under data/
            upload_dir: Directory that receives uploaded dataset files
            echo: Echo SQL statements
        """
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.upload_dir = Path(upload_dir or UPLOAD_DIR)

        engine_kwargs = {"echo": echo}
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(self.database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.create_tables()

    @classmethod
    def from_config(cls, config: dict) -> Optional["DatabaseManager"]:
        """Build the manager from the `storage` section, or None when storage is disabled."""
        storage_config = config.get("storage", {})
        if not storage_config.get("enabled", True):
            logger.info("Storage disabled, running in demo mode")
            return None
        return cls(
            database_url=storage_config.get("url"),
            upload_dir=storage_config.get("upload_dir"),
            echo=storage_config.get("echo", False),
        )

    def create_tables(self):
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional session; SQLAlchemy failures become StorageError."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(str(e)) from e
        finally:
            db.close()

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.session_scope() as db:
                db.query(UserRecord).count()
            return True
        except StorageError as e:
            logger.error(f"Storage ping failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        password_hash: Optional[str] = None,
        display_name: Optional[str] = None,
        plan: str = "free",
        company: Optional[str] = None,
        uid: Optional[str] = None
    ) -> UserProfile:
        """
        Create a user document.

        Args:
            email: Login email, unique
            password_hash: Hashed password
            display_name: Display name
            plan: Subscription plan
            company: Company name
            uid: Explicit user id; generated when omitted

        Returns:
            Profile of the created user
        """
        with self.session_scope() as db:
            if db.query(UserRecord).filter(UserRecord.email == email).first():
                raise StorageError(f"User already exists: {email}")
            record = UserRecord(
                uid=uid or _new_id(),
                email=email,
                display_name=display_name or email.split("@")[0],
                password_hash=password_hash,
                company=company,
                plan=plan,
            )
            db.add(record)
            db.flush()
            return record.to_profile()

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        """Get a user's profile and password hash by email."""
        with self.session_scope() as db:
            record = db.query(UserRecord).filter(UserRecord.email == email).first()
            if record is None:
                return None
            return {"profile": record.to_profile(), "password_hash": record.password_hash}

    def get_user_profile(self, uid: str) -> Optional[UserProfile]:
        """Get a user profile by id."""
        with self.session_scope() as db:
            record = db.get(UserRecord, uid)
            return record.to_profile() if record else None

    def update_user_profile(self, uid: str, changes: Dict) -> UserProfile:
        """
        Apply profile changes to a user document.

        Args:
            uid: User id
            changes: Profile fields (name, company, plan, photo_url)

        Returns:
            Updated profile
        """
        columns = {"name": "display_name", "company": "company", "plan": "plan", "photo_url": "photo_url"}
        with self.session_scope() as db:
            record = db.get(UserRecord, uid)
            if record is None:
                raise StorageError(f"User not found: {uid}")
            for key, value in changes.items():
                if key in columns and value is not None:
                    setattr(record, columns[key], value)
            db.flush()
            return record.to_profile()

    # ------------------------------------------------------------------
    # Datasets
    # ------------------------------------------------------------------

    def upload_dataset(
        self,
        content: bytes,
        file_name: str,
        user_id: str,
        metadata: Dict
    ) -> Dict[str, str]:
        """
        Store a dataset file and create its dataset record.

        Args:
            content: Raw file bytes
            file_name: Name of the stored file
            user_id: Owner
            metadata: name, description, row_count, column_count, file_size

        Returns:
            Dictionary with dataset_id and file_url
        """
        target = self.upload_dir / user_id / file_name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise StorageError(f"Could not write {target}: {e}") from e

        with self.session_scope() as db:
            record = DatasetRecord(
                user_id=user_id,
                dataset_name=metadata["name"],
                description=metadata.get("description", ""),
                file_url=str(target),
                status=DatasetStatus.UPLOADED.value,
                row_count=metadata.get("row_count", 0),
                column_count=metadata.get("column_count", 0),
                file_size=metadata.get("file_size", 0),
                prediction_id=None,
            )
            db.add(record)
            db.flush()
            logger.info(f"Stored dataset {record.id} at {target}")
            return {"dataset_id": record.id, "file_url": str(target)}

    def get_user_datasets(self, user_id: str) -> List[Dataset]:
        """Get all datasets owned by a user, oldest first."""
        with self.session_scope() as db:
            records = (
                db.query(DatasetRecord)
                .filter(DatasetRecord.user_id == user_id)
                .order_by(DatasetRecord.created_at.asc())
                .all()
            )
            return [r.to_dataset() for r in records]

    def get_dataset(self, dataset_id: str) -> Optional[Dataset]:
        """Get a single dataset by id."""
        with self.session_scope() as db:
            record = db.get(DatasetRecord, dataset_id)
            return record.to_dataset() if record else None

    def delete_dataset(self, dataset_id: str) -> bool:
        """Delete a dataset record and its file. Returns False if it did not exist."""
        with self.session_scope() as db:
            record = db.get(DatasetRecord, dataset_id)
            if record is None:
                return False
            file_url = record.file_url
            db.delete(record)

        if file_url:
            Path(file_url).unlink(missing_ok=True)
        return True

    def update_dataset_with_prediction(self, dataset_id: str, prediction_id: str):
        """
        Link a dataset to a prediction and mark it processed.

        Args:
            dataset_id: Dataset to update
            prediction_id: Prediction to link
        """
        with self.session_scope() as db:
            record = db.get(DatasetRecord, dataset_id)
            if record is None:
                raise StorageError(f"Dataset not found: {dataset_id}")
            record.prediction_id = prediction_id
            record.status = DatasetStatus.PROCESSED.value
            record.updated_at = datetime.utcnow()
        logger.info(f"Updated dataset {dataset_id} with prediction_id {prediction_id}")

    # ------------------------------------------------------------------
    # Predictions
    # ------------------------------------------------------------------

    def store_dataset_result(
        self,
        user_id: str,
        dataset_id: str,
        file_url: Optional[str],
        churn_prediction: ChurnPrediction,
        customer_segments: Sequence[CustomerSegment],
        campaign_suggestions: Sequence[CampaignSuggestion] = ()
    ) -> StoreResult:
        """
        Persist analysis results and link them to their dataset.

        A prediction whose id is already stored is updated in place, so storing
        campaign suggestions after an analysis does not create a second record.

        Args:
            user_id: Owner
            dataset_id: Analysed dataset
            file_url: Location of the dataset file
            churn_prediction: Prediction summary
            customer_segments: Segments found in the dataset
            campaign_suggestions: Campaigns generated for the segments

        Returns:
            StoreResult with the stored prediction id
        """
        values = {
            "user_id": user_id,
            "dataset_id": dataset_id,
            "file_url": file_url or "",
            "churn_rate": churn_prediction.churn_rate,
            "segments": {str(i): s.size for i, s in enumerate(customer_segments)},
            "segment_details": _segment_documents(customer_segments),
            "suggestions": _suggestion_documents(campaign_suggestions, customer_segments),
            "accuracy": churn_prediction.accuracy,
            "precision": churn_prediction.precision,
            "recall": churn_prediction.recall,
            "f1_score": churn_prediction.f1_score,
            "predicted_churn_count": churn_prediction.predicted_churn_count,
            "total_customers": churn_prediction.total_customers,
        }

        with self.session_scope() as db:
            record = db.get(PredictionRecord, churn_prediction.id)
            if record is None:
                record = PredictionRecord(**values)
                db.add(record)
                logger.info("Creating prediction document")
            else:
                for key, value in values.items():
                    setattr(record, key, value)
                logger.info(f"Updating prediction document {record.id}")
            db.flush()
            prediction_id = record.id

        try:
            self.update_dataset_with_prediction(dataset_id, prediction_id)
        except StorageError as e:
            logger.error(f"Error updating dataset with prediction ID: {e}")
            return StoreResult(
                prediction_id=prediction_id,
                dataset_linked=False,
                error=f"Prediction created but failed to update dataset: {e}",
            )

        return StoreResult(prediction_id=prediction_id)

    def get_prediction(self, prediction_id: str) -> Optional[Dict]:
        """Get a stored prediction by id."""
        with self.session_scope() as db:
            record = db.get(PredictionRecord, prediction_id)
            return record.to_dict() if record else None
