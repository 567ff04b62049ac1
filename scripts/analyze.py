"""
Analysis Script
===============

Command-line walk through the whole workflow: sign in, upload a customer
dataset, run the churn analysis and print campaign suggestions.

Usage:
    python scripts/analyze.py customers.csv --name "Q3 Customers"
    python scripts/analyze.py customers.csv --simulate --export
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loguru import logger

from config import get_config
from marketmind.api.database import DatabaseManager
from marketmind.services import AuthService
from marketmind.store import AppStore, AuthStore, StoreError
from marketmind.utils import format_metrics, setup_logging


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Analyse a customer dataset")

    parser.add_argument(
        "file",
        type=str,
        help="CSV file with one row per customer"
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Dataset name (defaults to the file name)"
    )
    parser.add_argument(
        "--description",
        type=str,
        default="",
        help="Dataset description"
    )
    parser.add_argument(
        "--email",
        type=str,
        default="demo@example.com",
        help="Account email"
    )
    parser.add_argument(
        "--password",
        type=str,
        default="password123",
        help="Account password"
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Skip the remote ML service and use the local simulation"
    )
    parser.add_argument(
        "--export",
        action="store_true",
        help="Export every suggested campaign to the CRM"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )

    return parser.parse_args()


async def run(args, config: dict) -> int:
    """Drive the workflow; returns the process exit code."""
    storage = DatabaseManager.from_config(config)
    auth_store = AuthStore(AuthService(config, storage=storage))
    auth_store.initialize_auth()

    if not auth_store.login(args.email, args.password):
        logger.error(f"Sign-in failed: {auth_store.error}")
        return 1

    app_store = AppStore(auth_store, config=config, storage=storage)

    path = Path(args.file)
    content = path.read_bytes()
    try:
        dataset = await app_store.upload_dataset(
            args.name or path.stem,
            args.description,
            len(content),
            content=content,
        )
        await app_store.run_analysis(dataset.id)
        await app_store.generate_campaigns()
    except (StoreError, ValueError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    prediction = app_store.churn_prediction
    print(f"\nDataset: {dataset.name} ({dataset.row_count} rows, {dataset.column_count} columns)")
    print(f"Prediction: {prediction.id}")
    metrics = format_metrics({
        "accuracy": prediction.accuracy,
        "precision": prediction.precision,
        "recall": prediction.recall,
        "f1_score": prediction.f1_score,
        "churn_rate": prediction.churn_rate,
    })
    for name, value in metrics.items():
        print(f"  {name:<12} {value}")
    print(f"  predicted churners: {prediction.predicted_churn_count} of {prediction.total_customers}")

    print("\nSegments:")
    for segment in app_store.customer_segments:
        print(f"  {segment.name:<24} {segment.size:>7} ({segment.percentage:.1f}%)  churn risk {segment.churn_risk:.2f}")

    print("\nCampaigns:")
    for campaign in app_store.campaign_suggestions:
        print(f"  [{campaign.difficulty}] {campaign.title} -> {campaign.target_segment} "
              f"(+{campaign.expected_impact:.0%}, {', '.join(campaign.channels)})")
        if args.export:
            ok = await app_store.export_campaign(campaign.id)
            print(f"      export: {'ok' if ok else app_store.error}")

    app_store.save_state()
    return 0


def main():
    """Main analysis function."""
    args = parse_args()

    setup_logging(level=args.log_level, log_file="analysis.log")

    config = get_config()
    if args.simulate:
        config.setdefault("ml_api", {})["enabled"] = False

    sys.exit(asyncio.run(run(args, config)))


if __name__ == "__main__":
    main()
