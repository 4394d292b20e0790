"""Read-only selectors: status history and monthly counters."""

from certification_kernel.selectors.aggregate_selector import AggregateSelector
from certification_kernel.selectors.history_selector import HistorySelector

__all__ = ["AggregateSelector", "HistorySelector"]
