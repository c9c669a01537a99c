"""taskpulse: personal productivity tracker client."""

__version__ = "0.1.0"
