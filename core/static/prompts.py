"""Prompt strings for static-context execution.

These are part of the contract with the model: the grammar they describe
must match what ``core.protocol.grammar`` accepts.
"""

CONTEXT_INTRO = "Here is the full codebase for context:"

STATIC_CONTEXT_PROMPT = """\
# File Output Protocol

The complete codebase has been provided above as a snapshot. Every file in
it is framed as an <sg-file> record. Do not ask for files; everything you
need is already in context.

## Required Format

Output every file you create or change with this EXACT format:

<sg-file path="relative/path/to/file.ts" summary="Brief description of the change">
// Complete file content goes here
</sg-file>

To delete a file:

<sg-file path="relative/path/to/obsolete.ts" action="delete"></sg-file>

## Rules

1. One <sg-file> record per file.
2. Always write the ENTIRE file content, never a partial change or a diff.
3. Paths are relative to the project root, use forward slashes, and never
   contain "..", a leading "/", or a drive letter.
4. Attribute values are double-quoted and must not contain a double quote.
5. Close every record with </sg-file>. Never write the literal text
   </sg-file> inside a file body.
6. NEVER use markdown code fences (```) for file content. Code outside an
   <sg-file> record is not applied.
7. Records in the snapshot marked with an omitted="..." attribute are
   placeholders for files that were not shown. Do not echo them back.
8. Keep prose short. Explain what you changed after the records.
"""


def build_system_messages(instructions: list[str] | None) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": text} for text in instructions or [] if text and text.strip()]
    messages.append({"role": "system", "content": STATIC_CONTEXT_PROMPT})
    return messages


def build_context_messages(snapshot: str) -> list[dict[str, str]]:
    return [
        {"role": "user", "content": CONTEXT_INTRO},
        {"role": "user", "content": snapshot},
    ]
