"""Custom exceptions for the hello service."""

from __future__ import annotations


class HelloError(RuntimeError):
    """Base error for the hello service."""


class HelloConfigError(HelloError):
    """Raised when service environment/configuration is invalid."""


class InvalidNameError(HelloError):
    """Raised when a greeted name contains characters outside printable ASCII."""

    def __init__(self, name: str):
        super().__init__(f"Name must be non-empty printable ASCII: {name!r}")
        self.name = name


class StorageError(HelloError):
    """Raised when the stats store cannot complete a transaction."""
