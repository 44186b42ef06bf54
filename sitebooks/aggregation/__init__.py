"""Dashboard aggregation package."""

from sitebooks.aggregation.dashboard import AggregationError, DashboardAggregator
from sitebooks.aggregation.summaries import (
    DEFAULT_CASH_LABEL,
    compute_summaries,
    summarize_accounts,
    summarize_sites,
)

__all__ = [
    "AggregationError",
    "DashboardAggregator",
    "DEFAULT_CASH_LABEL",
    "compute_summaries",
    "summarize_accounts",
    "summarize_sites",
]
