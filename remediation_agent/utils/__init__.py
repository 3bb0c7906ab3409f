"""Utility functions."""

from .logging import setup_logging, get_logger
from .metrics import (
    ScanMetrics,
    FixMetrics,
    calculate_scan_metrics,
    calculate_fix_metrics,
    generate_recommendations,
    format_metrics_report,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "ScanMetrics",
    "FixMetrics",
    "calculate_scan_metrics",
    "calculate_fix_metrics",
    "generate_recommendations",
    "format_metrics_report",
]
