"""
MarketMind
==========

Client-side orchestration for a marketing-analytics product: upload customer
datasets, run churn prediction and segmentation, and suggest campaigns.

Modules:
    - api: FastAPI backend, schemas and storage
    - data: Dataset loading and demo records
    - services: ML client, simulation fallback, analysis, campaigns, auth
    - store: Session state and workflow actions
    - utils: Utility functions
"""

__version__ = "1.0.0"
