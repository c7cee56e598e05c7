"""
MIME Decoder
============

Turns raw RFC 822 bytes into a DecodedMessage: headers, text and HTML body
variants, and the ordered attachment list. Also parses the header-only
fetches used for message summaries.
"""

from __future__ import annotations

import email
from datetime import datetime
from email import policy
from email.message import EmailMessage as MIMEMessage

from contracts import AttachmentEntry, DecodedMessage, MessageSummary
from src.mailbox_mcp.rendering import text_to_html

_BODY_TYPES = ("text/plain", "text/html")


def decode_message(raw: bytes) -> DecodedMessage:
    """Decode a complete raw message."""
    msg = email.message_from_bytes(raw, policy=policy.default)

    text_part = msg.get_body(preferencelist=("plain",))
    html_part = msg.get_body(preferencelist=("html",))
    text = _decode_payload(text_part) if text_part is not None else None
    body_html = _decode_payload(html_part) if html_part is not None else None

    body_parts = {id(p) for p in (text_part, html_part) if p is not None}
    attachments: list[AttachmentEntry] = []
    _collect_attachments(msg, body_parts, attachments)

    return DecodedMessage(
        subject=_header(msg, "Subject"),
        from_addr=_header(msg, "From"),
        to_addrs=_header(msg, "To"),
        date=_header_date(msg),
        message_id=_header(msg, "Message-ID"),
        text=text or None,
        html=body_html or None,
        text_as_html=text_to_html(text) if text else None,
        attachments=attachments,
    )


def _collect_attachments(
    part: MIMEMessage, body_parts: set[int], out: list[AttachmentEntry]
) -> None:
    content_type = part.get_content_type()

    if content_type == "message/rfc822":
        out.append(_attachment(part, _embedded_bytes(part)))
        return

    if part.is_multipart():
        for sub in part.iter_parts():
            _collect_attachments(sub, body_parts, out)
        return

    if id(part) in body_parts:
        return
    if content_type in _BODY_TYPES and not part.is_attachment():
        # Additional inline text segments belong to the body.
        return
    out.append(_attachment(part, part.get_payload(decode=True) or b""))


def _embedded_bytes(part: MIMEMessage) -> bytes:
    payload = part.get_payload()
    if isinstance(payload, list) and payload:
        return payload[0].as_bytes()
    return part.get_payload(decode=True) or b""


def _attachment(part: MIMEMessage, content: bytes) -> AttachmentEntry:
    content_id = part.get("Content-ID")
    if content_id:
        content_id = str(content_id).strip().strip("<>") or None
    return AttachmentEntry(
        filename=part.get_filename() or None,
        content_type=part.get_content_type() or "application/octet-stream",
        content=content,
        size=len(content),
        content_disposition=part.get_content_disposition(),
        content_id=content_id,
    )


def _decode_payload(part: MIMEMessage) -> str:
    """Decode a text part, tolerating bad charsets."""
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _header(msg: MIMEMessage, name: str) -> str | None:
    value = msg.get(name)
    if value is None:
        return None
    return str(value).strip() or None


def _header_date(msg: MIMEMessage) -> str | None:
    try:
        value = msg.get("Date")
    except (TypeError, ValueError):
        return None
    parsed = getattr(value, "datetime", None)
    return parsed.isoformat() if parsed else None


def parse_summary(uid: int, header_bytes: bytes, internal_date: datetime | None) -> MessageSummary:
    """Build a MessageSummary from a FROM/TO/SUBJECT/DATE header fetch."""
    headers = email.message_from_bytes(header_bytes or b"", policy=policy.default)
    subject = _header(headers, "Subject") or "(No Subject)"
    sender = _header(headers, "From") or ""
    recipient = _header(headers, "To")
    date = internal_date.isoformat() if internal_date else (_header_date(headers) or "")
    return MessageSummary(
        id=str(uid),
        subject=subject,
        from_addr=sender,
        to_addrs=[recipient] if recipient else [],
        date=date,
        snippet=f"{subject} - {sender or 'Unknown sender'}",
    )
