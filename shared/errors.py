"""Errors shared by the post cache, the analytics service and the web layer."""


class InvalidArgument(ValueError):
    """Bad input detected before any I/O (date range, cache key, config, ...)."""


class StoreUnavailable(RuntimeError):
    """A Redis primitive failed on connectivity or timeout."""
