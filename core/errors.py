"""Error taxonomy for the workspace engine.

Fail-loud policy:
- Workspace, transport and persistence failures raise.
- Per-record problems while applying a model reply are collected as
  RecordError values and never abort the batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.static.options import ExecuteResult


class SigridError(Exception):
    """Base class for every error surfaced by the engine."""


class ConfigurationError(SigridError):
    """Options or settings are inconsistent."""


class PathEscapeError(SigridError, ValueError):
    """A path resolves outside the workspace root."""

    def __init__(self, path: str, reason: str = "path escapes workspace root"):
        super().__init__(f"{reason}: {path!r}")
        self.path = path
        self.reason = reason


class WorkspaceError(SigridError):
    """Workspace lifecycle failure."""


class AlreadyPopulatedError(WorkspaceError):
    """populate() called on a workspace that was already seeded."""


class ExtractError(WorkspaceError):
    """The archive could not be extracted."""


class WorkspaceNotFoundError(WorkspaceError):
    """The workspace directory does not exist."""


class WalkError(SigridError):
    """I/O failure while walking the workspace for a snapshot."""


class BudgetExceededError(SigridError):
    """The snapshot body exceeds the caller-specified ceiling."""

    def __init__(self, total_bytes: int, limit: int):
        super().__init__(f"Snapshot body is {total_bytes} bytes, limit is {limit}")
        self.total_bytes = total_bytes
        self.limit = limit


class TransportError(SigridError):
    """The LLM transport failed (network, provider or timeout)."""


class PersistenceError(SigridError):
    """The conversation store failed after files were committed."""

    def __init__(self, message: str, result: ExecuteResult | None = None):
        super().__init__(message)
        self.result = result


class ExecutionCancelled(SigridError):
    """execute() observed a cancellation request.

    ``result`` is None when nothing was committed; otherwise it holds the
    files written before the cancellation was observed.
    """

    def __init__(self, message: str = "Execution cancelled", result: ExecuteResult | None = None):
        super().__init__(message)
        self.result = result


class ErrorKind(StrEnum):
    PARSE_ERROR = "parse_error"
    PATH_ESCAPE = "path_escape"
    WRITE_FAILURE = "write_failure"


@dataclass
class RecordError:
    """A single file record that could not be applied."""

    kind: ErrorKind
    path: str | None
    message: str
