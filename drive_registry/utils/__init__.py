"""Shared utilities for configuration, logging, and retries"""

from drive_registry.utils.retry import BackoffRetrier, backoff_delay

__all__ = ["BackoffRetrier", "backoff_delay"]
