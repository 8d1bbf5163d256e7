"""SPOT ME - real-time location sharing server and tracking client."""

__version__ = "0.1.0"
