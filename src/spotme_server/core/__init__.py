"""Core configuration, persistence, security and shared helpers."""
