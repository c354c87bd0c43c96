"""Find and remove level assets nothing references."""

from .config import AppConfig, load_config
from .pipeline import run_cleanup, run_duplicates, run_scan, scan_level

__all__ = ["AppConfig", "load_config", "run_cleanup", "run_duplicates", "run_scan", "scan_level"]
