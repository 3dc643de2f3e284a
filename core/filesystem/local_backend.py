"""Local filesystem backend - direct local I/O."""

from __future__ import annotations

import os
import secrets
from pathlib import Path

from core.filesystem.backend import (
    FileDeleteResult,
    FileSystemBackend,
    FileWriteResult,
)


class LocalBackend(FileSystemBackend):
    """Backend that operates directly on the local filesystem.

    Writes are atomic: content goes to a sibling temp file that is renamed
    over the target.
    """

    def write_file(self, path: str, content: str) -> FileWriteResult:
        p = Path(path)
        tmp = p.with_name(f"{p.name}.tmp-{secrets.token_hex(6)}")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            data = content.encode("utf-8")
            tmp.write_bytes(data)
            os.replace(tmp, p)
            return FileWriteResult(success=True, size=len(data))
        except OSError as e:
            tmp.unlink(missing_ok=True)
            return FileWriteResult(success=False, error=str(e))

    def delete_file(self, path: str) -> FileDeleteResult:
        p = Path(path)
        try:
            p.unlink()
            return FileDeleteResult(success=True)
        except FileNotFoundError:
            return FileDeleteResult(success=True, existed=False)
        except OSError as e:
            return FileDeleteResult(success=False, error=str(e))

