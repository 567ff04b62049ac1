"""
Data Loader Module
==================

Reads uploaded customer datasets and derives the counts stored with them.
"""

import io
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd
from loguru import logger


class DatasetValidationError(ValueError):
    """Raised when an uploaded file cannot be read as a tabular dataset."""


class DataLoader:
    """Load customer datasets from uploads or local files."""

    SUPPORTED_EXTENSIONS = [".csv", ".xlsx", ".xls", ".parquet"]

    def load(
        self,
        source: Union[bytes, str, Path],
        file_name: Optional[str] = None,
        **kwargs
    ) -> pd.DataFrame:
        """
        Load a dataset from raw bytes or a file path.

        Args:
            source: File content or path to the file
            file_name: Name used to pick the parser for raw bytes; CSV if omitted
            **kwargs: Additional arguments for the pandas reader

        Returns:
            DataFrame containing the dataset
        """
        if isinstance(source, (bytes, bytearray)):
            ext = Path(file_name).suffix.lower() if file_name else ".csv"
            handle = io.BytesIO(source)
        else:
            path = Path(source)
            if not path.exists():
                logger.error(f"Data file not found: {path}")
                raise FileNotFoundError(f"Data file not found: {path}")
            ext = path.suffix.lower() or ".csv"
            handle = path

        if ext not in self.SUPPORTED_EXTENSIONS:
            raise DatasetValidationError(f"Unsupported file format: {ext}")

        try:
            if ext == ".csv":
                df = pd.read_csv(handle, **kwargs)
            elif ext in [".xlsx", ".xls"]:
                df = pd.read_excel(handle, **kwargs)
            else:
                df = pd.read_parquet(handle, **kwargs)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, ValueError) as e:
            raise DatasetValidationError(f"Could not read dataset: {e}") from e

        logger.info(f"Loaded {len(df)} rows and {len(df.columns)} columns")
        return df

    def profile(
        self,
        source: Union[bytes, str, Path],
        file_name: Optional[str] = None
    ) -> Dict[str, int]:
        """
        Count rows and columns of a dataset.

        Args:
            source: File content or path to the file
            file_name: Name used to pick the parser for raw bytes

        Returns:
            Dictionary with row_count and column_count
        """
        df = self.load(source, file_name=file_name)
        report = self.validate_data(df)
        if report["duplicates"]:
            logger.warning(f"Dataset has {report['duplicates']} duplicate rows")
        return {"row_count": int(report["total_rows"]), "column_count": int(report["total_columns"])}

    def validate_data(self, df: pd.DataFrame) -> dict:
        """
        Summarise data quality of a loaded dataset.

        Args:
            df: DataFrame to validate

        Returns:
            Dictionary with validation results
        """
        return {
            "total_rows": len(df),
            "total_columns": len(df.columns),
            "missing_values": df.isnull().sum().to_dict(),
            "missing_percentage": (df.isnull().sum() / max(len(df), 1) * 100).to_dict(),
            "duplicates": int(df.duplicated().sum()),
            "dtypes": df.dtypes.astype(str).to_dict(),
        }
