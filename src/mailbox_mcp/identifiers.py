"""
Identifier Resolution
=====================

Maps a caller-supplied identifier to the UID the transport fetches by.

Message-ID values are searched both bracketed and bare: mail agents differ
on whether the angle brackets are part of the stored header value.
"""

from __future__ import annotations

from contracts import IdType, MailboxTransport

MESSAGE_ID_HEADER = "MESSAGE-ID"


def normalize_ids(ids: str | list[str]) -> list[str]:
    """One identifier or a list of them, order and duplicates kept."""
    return [ids] if isinstance(ids, str) else list(ids)


def parse_uid(identifier: str) -> int | None:
    """Base-10 positive integer, else None."""
    value = identifier.strip()
    if not value.isascii() or not value.isdigit():
        return None
    uid = int(value)
    return uid if uid > 0 else None


def message_id_candidates(message_id: str) -> list[str]:
    """
    Search forms for a Message-ID, bracketed form first.

    "<a@b>" -> ["<a@b>", "a@b"]; "a@b" -> ["<a@b>", "a@b"]; "<>" -> ["<>"]
    """
    trimmed = message_id.strip()
    if not trimmed:
        return []
    if trimmed.startswith("<") and trimmed.endswith(">") and len(trimmed) >= 2:
        stripped = trimmed[1:-1]
        return [trimmed, stripped] if stripped else [trimmed]
    return [f"<{trimmed}>", trimmed]


async def resolve_uid_for_message_id(session: MailboxTransport, message_id: str) -> int | None:
    """First UID matching any candidate form, trying candidates in order."""
    for candidate in message_id_candidates(message_id):
        results = await session.search_header(MESSAGE_ID_HEADER, candidate)
        if results:
            return results[0]
    return None


async def resolve(session: MailboxTransport, identifier: str, id_type: IdType) -> int | None:
    """
    Resolve `identifier` to a UID, or None when nothing matches.

    UID identifiers never touch the store. Transport errors propagate.
    """
    if id_type == IdType.UID:
        return parse_uid(identifier)
    return await resolve_uid_for_message_id(session, identifier)
