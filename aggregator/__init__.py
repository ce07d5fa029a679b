"""UK public-sector organisation aggregator."""

__version__ = "0.1.0"
