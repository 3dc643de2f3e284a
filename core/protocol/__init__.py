"""The <sg-file> file-write protocol: grammar, streaming and final parsers."""

from core.protocol.deserializer import ApplyResult, FileWrite, WrittenFile, apply_file_writes, parse_file_writes
from core.protocol.grammar import FileAction, extract_file_paths, strip_file_blocks
from core.protocol.streaming import StreamEvent, StreamingFileParser

__all__ = [
    "ApplyResult",
    "FileAction",
    "FileWrite",
    "StreamEvent",
    "StreamingFileParser",
    "WrittenFile",
    "apply_file_writes",
    "extract_file_paths",
    "parse_file_writes",
    "strip_file_blocks",
]
