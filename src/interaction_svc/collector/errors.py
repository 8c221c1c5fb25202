"""Errors raised across the producer/collector boundary."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for delivery bridge failures."""


class TransportError(BridgeError):
    """The channel failed to deliver a request or its response."""
    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ValidationError(BridgeError):
    """The collector rejected a request (malformed or unknown type)."""
    def __init__(self, error: str, response: dict | None = None):
        super().__init__(f"Collector rejected request: {error}")
        self.error = error
        self.response = response or {}


class CollectorError(Exception):
    """Base class for collector-side failures."""


class StoreError(CollectorError):
    """The key-value store behind the queue failed."""
    def __init__(self, operation: str, key: str, cause: BaseException | None = None):
        super().__init__(f"Store {operation} failed for {key!r}: {cause}")
        self.operation = operation
        self.key = key
        self.cause = cause
