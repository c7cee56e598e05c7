"""Raw message retrieval: one BODY.PEEK[] fetch per call."""

from __future__ import annotations

from typing import Any

from contracts import MailboxTransport, MessageNotFoundError, TransportExchangeError

# PEEK keeps \Seen untouched; servers answer under the plain BODY[] key.
FETCH_ITEMS = ["BODY.PEEK[]"]
_BODY_KEYS = (b"BODY[]", b"RFC822", "BODY[]", "RFC822")


def _coerce_chunk(chunk: Any) -> bytes:
    """Bytes as-is; text mapped byte-for-byte, never re-encoded."""
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    if isinstance(chunk, str):
        try:
            return chunk.encode("latin-1")
        except UnicodeEncodeError:
            return chunk.encode("utf-8", errors="surrogateescape")
    raise TransportExchangeError(f"Unexpected body chunk type: {type(chunk).__name__}")


def assemble(chunks: Any) -> bytes:
    """Concatenate body data in delivery order."""
    if chunks is None:
        return b""
    if isinstance(chunks, (list, tuple)):
        return b"".join(_coerce_chunk(c) for c in chunks)
    return _coerce_chunk(chunks)


def _body_data(message_data: dict) -> Any:
    for key in _BODY_KEYS:
        if key in message_data:
            return message_data[key]
    return None


async def fetch_raw(session: MailboxTransport, uid: int) -> bytes:
    """
    Fetch the complete raw message for `uid`.

    ERRORS:
    - MessageNotFoundError: server reported no message for the UID
    - TransportExchangeError: the fetch failed before completion
    """
    response = await session.fetch([uid], FETCH_ITEMS)
    message_data = response.get(uid)
    if message_data is None:
        # Entries for other UIDs are unsolicited updates, never this message.
        raise MessageNotFoundError(f"Message not found for UID: {uid}")
    return assemble(_body_data(message_data))
