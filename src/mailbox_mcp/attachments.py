"""
Attachment Classification
=========================

Selects attachments matching an optional filter and places each one either
inline (short text-like payloads) or in a temporary file.

INVARIANTS:
- Filter is built before any store access; a bad regex fails the request
- Selection preserves the decoder's attachment order
- Every temporary file name carries a fresh random token
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from collections.abc import Callable, Iterable
from pathlib import Path

from contracts import (
    AttachmentEntry,
    AttachmentFilter,
    AttachmentMeta,
    AttachmentResult,
    FilterConstructionError,
    PersistenceError,
    TemporaryStorage,
)
from src.mailbox_mcp.rendering import decode_utf8, should_inline

logger = logging.getLogger(__name__)

AttachmentPredicate = Callable[[AttachmentEntry], bool]

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}
# JavaScript-style flags without a Python counterpart; ignored.
_NOOP_FLAGS = frozenset("gudy")

_PATH_SEPARATORS = re.compile(r"[\\/]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def new_token() -> str:
    return secrets.token_hex(6)


def _compile_name_regex(pattern: str, flags: str | None) -> re.Pattern[str]:
    compiled_flags = 0
    for flag in flags or "":
        if flag in _REGEX_FLAGS:
            compiled_flags |= _REGEX_FLAGS[flag]
        elif flag not in _NOOP_FLAGS:
            raise FilterConstructionError(f"Invalid nameRegex: unknown flag {flag!r}")
    try:
        return re.compile(pattern, compiled_flags)
    except re.error as e:
        raise FilterConstructionError(f"Invalid nameRegex: {e}") from e


def _mime_matches(content_type: str, mime_types: list[str]) -> bool:
    for mime in mime_types:
        if mime.endswith("/*"):
            if content_type.startswith(mime[:-1]):
                return True
        elif content_type == mime:
            return True
    return False


def build_attachment_predicate(attachment_filter: AttachmentFilter | None) -> AttachmentPredicate:
    """
    Compile `attachment_filter` into a predicate over attachment entries.

    No filter matches everything. Filename and content-type constraints are
    conjunctive.

    ERRORS:
    - FilterConstructionError: name_regex or its flags are invalid
    """
    if attachment_filter is None:
        return lambda attachment: True

    name_regex = (
        _compile_name_regex(attachment_filter.name_regex, attachment_filter.name_regex_flags)
        if attachment_filter.name_regex
        else None
    )
    name = attachment_filter.name.lower() if attachment_filter.name else None
    contains = (
        attachment_filter.name_contains.lower() if attachment_filter.name_contains else None
    )
    mime_types = [m.lower() for m in attachment_filter.mime_types or []]

    def predicate(attachment: AttachmentEntry) -> bool:
        if name or contains or name_regex:
            filename = attachment.filename or ""
            lower = filename.lower()
            if name and lower != name:
                return False
            if contains and contains not in lower:
                return False
            if name_regex and not name_regex.search(filename):
                return False

        if mime_types:
            content_type = (attachment.content_type or "").lower()
            if not _mime_matches(content_type, mime_types):
                return False

        return True

    return predicate


def select_attachments(
    attachments: Iterable[AttachmentEntry], predicate: AttachmentPredicate
) -> list[AttachmentEntry]:
    return [a for a in attachments if predicate(a)]


def sanitize_filename(filename: str) -> str:
    return _PATH_SEPARATORS.sub("_", _CONTROL_CHARS.sub("", filename))


class TempFileStorage:
    """Writes files into one temporary directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _write_sync(self, name: str, content: bytes) -> Path:
        path = self.directory / name
        # Exclusive create; names are token-unique.
        with open(path, "xb") as fh:
            fh.write(content)
        return path

    async def write(self, name: str, content: bytes) -> Path:
        try:
            return await asyncio.to_thread(self._write_sync, name, content)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to write {name}: {e}") from e


async def materialize(
    storage: TemporaryStorage, content: bytes, filename: str | None, uid: int
) -> Path:
    """Persist `content` under "<token>-<sanitized filename>"."""
    token = new_token()
    safe_name = sanitize_filename(filename or "") or f"attachment-{uid}-{token}"
    return await storage.write(f"{token}-{safe_name}", content)


async def place(storage: TemporaryStorage, attachment: AttachmentEntry, uid: int) -> AttachmentResult:
    """
    Inline or materialize one attachment.

    A storage failure is recorded on the returned result, not raised.
    """
    content_type = attachment.content_type or "application/octet-stream"
    result = AttachmentResult(
        filename=attachment.filename or f"attachment-{uid}",
        content_type=content_type,
        size=attachment.size if attachment.size is not None else len(attachment.content),
        content_disposition=attachment.content_disposition or None,
        content_id=attachment.content_id or None,
    )

    if should_inline(content_type, attachment.content):
        result.inline_content = decode_utf8(attachment.content)
        return result

    try:
        saved = await materialize(storage, attachment.content, attachment.filename, uid)
    except PersistenceError as e:
        logger.warning("Attachment write failed for UID %s: %s", uid, e)
        result.error = str(e)
        return result
    result.saved_to = str(saved)
    return result


def describe(attachments: list[AttachmentEntry], uid: int) -> list[AttachmentMeta]:
    """Inventory without content; unnamed entries get a positional name."""
    return [
        AttachmentMeta(
            filename=a.filename or f"attachment-{uid}-{index}",
            content_type=a.content_type or "application/octet-stream",
            size=a.size if a.size is not None else len(a.content),
            content_disposition=a.content_disposition or None,
            content_id=a.content_id or None,
        )
        for index, a in enumerate(attachments, start=1)
    ]
