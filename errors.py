"""
Exception types shared by the Blocksmith pack engine.

Per-item problems during a scan never raise (the archive is skipped), and
per-operation problems during an install end up in ``MoveOperation.error``.
The classes below are what callers see when something has to stop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pack_types import MoveOperation


class PackError(Exception):
    """Base class for all pack engine errors."""


class ArchiveError(PackError):
    """An archive could not be opened or one of its members could not be read."""


class PackSecurityError(PackError):
    """An archive entry or a delete request points outside the allowed directory."""


class ConfigurationError(PackError):
    """A required directory or setting is missing; the batch cannot start."""


class RollbackError(PackError):
    """Rolling back an install failed after the entry was taken off the undo log."""

    def __init__(self, message: str, operation: MoveOperation):
        super().__init__(message)
        self.operation = operation
