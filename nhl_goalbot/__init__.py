"""Goal tracker and scoring-chance notifier for a single NHL player."""

__version__ = "0.4.0"
