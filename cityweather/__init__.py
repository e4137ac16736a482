"""City resolution and weather aggregation services."""

__version__ = "0.1.0"
