"""Exceptions raised while mirroring logs into the store."""

from __future__ import annotations


class LogProcessingError(Exception):
    """Base class for errors that abort processing of a single log."""


class StoreError(LogProcessingError):
    """An underlying store query failed."""


class MissingDependencyError(LogProcessingError):
    """A related row the log depends on (e.g. the active fee window) is absent."""


class DuplicateKeyError(LogProcessingError):
    """A row keyed by (transaction hash, log index) already exists."""

    def __init__(self, table: str, transaction_hash: str, log_index: int) -> None:
        super().__init__(f"{table} already has a row for {transaction_hash}:{log_index}")
        self.table = table
        self.transaction_hash = transaction_hash
        self.log_index = log_index


class NotFoundError(LogProcessingError):
    """A row expected to be present for a retraction is absent."""

    def __init__(self, table: str, transaction_hash: str, log_index: int) -> None:
        super().__init__(f"{table} has no row for {transaction_hash}:{log_index}")
        self.table = table
        self.transaction_hash = transaction_hash
        self.log_index = log_index


class UnknownEventError(LogProcessingError):
    """No handler is registered for the event name."""
