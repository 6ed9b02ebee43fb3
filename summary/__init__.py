"""
Location summaries and the scheduled jobs that email them.

The job runner lives in summary.jobs and is imported from there.
"""

from summary.aggregator import (
    DAILY,
    MONTHLY,
    SUMMARY_CONFIGS,
    DailyActivity,
    Grouping,
    LocationSummary,
    PlaceVisit,
    SummaryConfig,
    aggregate,
)

__all__ = [
    "DAILY",
    "MONTHLY",
    "SUMMARY_CONFIGS",
    "DailyActivity",
    "Grouping",
    "LocationSummary",
    "PlaceVisit",
    "SummaryConfig",
    "aggregate",
]
