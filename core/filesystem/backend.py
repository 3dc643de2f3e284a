"""FileSystem backend abstraction.

Separates I/O mechanism from policy: callers resolve and sandbox paths,
the backend only performs the raw operation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class FileWriteResult:
    """Result of a write operation."""

    success: bool
    size: int = 0
    error: str | None = None


@dataclass
class FileDeleteResult:
    """Result of a delete operation."""

    success: bool
    existed: bool = True
    error: str | None = None


class FileSystemBackend(ABC):
    """Abstract backend for filesystem I/O.

    Implementations:
    - LocalBackend: direct local filesystem access
    """

    @abstractmethod
    def write_file(self, path: str, content: str) -> FileWriteResult:
        """Replace the file with ``content``, creating parent dirs as needed.

        Args:
            path: Absolute file path
            content: Full UTF-8 file content

        Returns:
            FileWriteResult with the number of bytes written
        """
        ...

    @abstractmethod
    def delete_file(self, path: str) -> FileDeleteResult:
        """Remove a file. A missing file is not an error."""
        ...
