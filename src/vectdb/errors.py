from __future__ import annotations


class VectDbError(Exception):
    """Base class for every error raised by vectdb."""


class ConfigurationError(VectDbError):
    """Invalid chunking or service configuration."""


class ConstraintViolation(VectDbError):
    """A uniqueness or foreign-key breach outside the normal dedup path.

    Indicates a logic bug in the caller, not bad user input.
    """


class ValidationError(VectDbError):
    """Rejected input: dimension mismatch, empty model name, unsupported file."""


class NotFoundError(VectDbError):
    pass


class TransientServiceError(VectDbError):
    """Retryable embedding-service failure (network, timeout, 5xx)."""


class TerminalServiceError(VectDbError):
    """Embedding-service failure that must not be retried (e.g. model not found)."""


class DeadlineExceededError(VectDbError):
    pass


class StorageIOError(VectDbError):
    """Underlying persistence failure."""
