"""Core engine: sandboxed filesystem, snapshots, the file-record protocol and static execution."""

from core.errors import (
    AlreadyPopulatedError,
    BudgetExceededError,
    ConfigurationError,
    ExecutionCancelled,
    ExtractError,
    PathEscapeError,
    PersistenceError,
    SigridError,
    TransportError,
    WalkError,
    WorkspaceError,
    WorkspaceNotFoundError,
)

__all__ = [
    "AlreadyPopulatedError",
    "BudgetExceededError",
    "ConfigurationError",
    "ExecutionCancelled",
    "ExtractError",
    "PathEscapeError",
    "PersistenceError",
    "SigridError",
    "TransportError",
    "WalkError",
    "WorkspaceError",
    "WorkspaceNotFoundError",
]
