"""File-per-conversation store using newline-delimited JSON.

Layout: ``<directory>/<conversation id>.log``, one ``{"role", "content"}``
object per line. Appends take an asyncio lock per id within the process
and an exclusive ``flock`` on the file across processes. Reads validate
every line and discard torn or corrupt records.
"""

from __future__ import annotations

import asyncio
import fcntl
import json
import logging
import os
import re
import secrets
from collections.abc import Sequence
from pathlib import Path

from storage.contracts import ConversationStore
from storage.locks import KeyedLock
from storage.models import Message

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".log"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _encode(messages: Sequence[Message]) -> bytes:
    return "".join(json.dumps(m.to_dict(), ensure_ascii=False) + "\n" for m in messages).encode("utf-8")


class FileSystemConversationStore(ConversationStore):
    def __init__(self, directory: Path | str):
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)
        self._locks = KeyedLock()

    def path_for(self, conversation_id: str) -> Path:
        if not conversation_id:
            raise ValueError("conversation_id is required")
        return self.directory / f"{_UNSAFE_CHARS.sub('_', conversation_id)}{LOG_SUFFIX}"

    async def get(self, conversation_id: str) -> list[Message] | None:
        return await asyncio.to_thread(self._read, self.path_for(conversation_id))

    async def append(self, conversation_id: str, message: Message) -> None:
        await self.append_many(conversation_id, [message])

    async def append_many(self, conversation_id: str, messages: Sequence[Message]) -> None:
        path = self.path_for(conversation_id)
        async with self._locks.hold(conversation_id):
            await asyncio.to_thread(self._append, path, _encode(messages))

    async def replace(self, conversation_id: str, messages: Sequence[Message]) -> None:
        path = self.path_for(conversation_id)
        async with self._locks.hold(conversation_id):
            await asyncio.to_thread(self._rewrite, path, _encode(messages))

    async def delete(self, conversation_id: str) -> None:
        path = self.path_for(conversation_id)
        async with self._locks.hold(conversation_id):
            await asyncio.to_thread(path.unlink, missing_ok=True)

    async def size(self) -> int:
        return len(await self.list_ids())

    async def list_ids(self) -> list[str]:
        return sorted(p.stem for p in self.directory.glob(f"*{LOG_SUFFIX}") if p.is_file())

    @staticmethod
    def _read(path: Path) -> list[Message] | None:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None

        lines = raw.split(b"\n")
        if lines and lines[-1]:
            # No trailing newline: the last record was torn mid-write.
            logger.warning("Discarding partial trailing record in %s", path.name)
        messages: list[Message] = []
        for lineno, line in enumerate(lines[:-1], start=1):
            if not line.strip():
                continue
            try:
                messages.append(Message.from_dict(json.loads(line)))
            except (ValueError, UnicodeDecodeError) as e:
                logger.warning("Discarding corrupt record %s:%d: %s", path.name, lineno, e)
        return messages

    @staticmethod
    def _append(path: Path, data: bytes) -> None:
        with open(path, "ab+") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                # Start on a fresh line if a previous writer was torn.
                end = f.seek(0, os.SEEK_END)
                if end > 0:
                    f.seek(end - 1)
                    if f.read(1) != b"\n":
                        data = b"\n" + data
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    @staticmethod
    def _rewrite(path: Path, data: bytes) -> None:
        tmp = path.with_name(f"{path.name}.tmp-{secrets.token_hex(6)}")
        try:
            with open(tmp, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)
