"""tablewatch - Watch and resync local copies of Keboola Storage tables."""

__version__ = "0.1.0"
