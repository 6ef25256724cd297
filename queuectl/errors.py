"""
Exception taxonomy for the queue engine.

Administrative no-ops (reviving a job that is not dead, completing an unknown
id) are not errors: those operations report ``None``/``False`` instead.
"""


class QueueError(Exception):
    """Base exception for queue errors."""


class ValidationError(QueueError):
    """Invalid input, e.g. an empty command or a malformed config value."""


class StoreUnavailableError(QueueError):
    """The underlying store could not be reached or refused the operation."""


class ConfigReadError(StoreUnavailableError):
    """The config lookup performed at enqueue time failed."""
