"""Security-news and advisory content extraction pipeline."""

__version__ = "0.3.0"
