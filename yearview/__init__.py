"""Year-grid calendar backend aggregating Google and Microsoft accounts."""

__version__ = "0.1.0"
