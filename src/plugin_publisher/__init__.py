"""Plugin publisher: review and build pipeline for third-party plugins."""

__version__ = "0.1.0"
