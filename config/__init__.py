"""Configuration module for MarketMind."""

import os
from pathlib import Path

import yaml

# Project root directory
ROOT_DIR = Path(__file__).parent.parent.absolute()

# Load configuration
CONFIG_PATH = Path(os.environ.get("MARKETMIND_CONFIG", ROOT_DIR / "config" / "config.yaml"))


def load_config(path: Path = None) -> dict:
    """Load configuration from YAML file."""
    with open(path or CONFIG_PATH, "r") as f:
        config = yaml.safe_load(f)
    return config or {}


def get_config() -> dict:
    """Get configuration dictionary."""
    return load_config()


# Export commonly used paths
DATA_DIR = ROOT_DIR / "data"
UPLOAD_DIR = DATA_DIR / "uploads"
LOGS_DIR = ROOT_DIR / "logs"

# Create directories if they don't exist
for dir_path in [DATA_DIR, UPLOAD_DIR, LOGS_DIR]:
    dir_path.mkdir(parents=True, exist_ok=True)
