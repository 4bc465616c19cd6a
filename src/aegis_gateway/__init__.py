"""Aegis scan gateway: AI-backed vulnerability scanning behind a throttled HTTP endpoint."""

__version__ = "0.1.0"
