"""
Run MarketMind API Server
=========================

Script to start the MarketMind API server.

Usage:
    python scripts/run_api.py
    python scripts/run_api.py --port 8000 --reload
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn

from config import get_config
from marketmind.utils import setup_logging_from_config


def parse_args(api_config: dict):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Run MarketMind API server")

    parser.add_argument(
        "--host",
        type=str,
        default=api_config.get("host", "0.0.0.0"),
        help="Host to bind to"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=api_config.get("port", 8000),
        help="Port to bind to"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        default=api_config.get("reload", False),
        help="Enable auto-reload"
    )

    return parser.parse_args()


def main():
    """Run the API server."""
    config = get_config()
    args = parse_args(config.get("api", {}))
    setup_logging_from_config(config)

    print(f"""
    ╔═══════════════════════════════════════════════════╗
    ║       MarketMind API Server                       ║
    ╠═══════════════════════════════════════════════════╣
    ║  Host: {args.host:<15}                          ║
    ║  Port: {args.port:<15}                          ║
    ║  Reload: {str(args.reload):<13}                          ║
    ╠═══════════════════════════════════════════════════╣
    ║  API Docs: http://localhost:{args.port}/docs            ║
    ║  ReDoc:    http://localhost:{args.port}/redoc           ║
    ╚═══════════════════════════════════════════════════╝
    """)

    # One worker: the API serves a single in-memory session
    uvicorn.run(
        "marketmind.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1
    )


if __name__ == "__main__":
    main()
