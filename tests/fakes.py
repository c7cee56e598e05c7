"""
Fake IMAP store used by the engine and server tests.

Answers UID SEARCH (HEADER MESSAGE-ID exact match, ALL, TEXT) and UID FETCH
(BODY.PEEK[] and the summary header fields) from an in-memory dict, so the
real EmailIMAPClient and engine code paths run unmodified.
"""

from __future__ import annotations

from datetime import datetime
from email.message import EmailMessage

SUMMARY_KEY = b"BODY[HEADER.FIELDS (FROM TO SUBJECT DATE)]"


def build_raw_email(
    *,
    message_id: str = "<a@b>",
    subject: str = "Quarterly report",
    sender: str = "Sender <sender@example.com>",
    to: str = "Recipient <recipient@example.com>",
    text: str | None = "This is a test email body.",
    html: str | None = None,
    attachments: tuple = (),
) -> bytes:
    """attachments: (filename, "type/subtype", bytes) tuples, in order."""
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject
    msg["Date"] = "Mon, 13 Jan 2026 10:00:00 +0000"
    msg["Message-ID"] = message_id
    if text is not None:
        msg.set_content(text)
        if html is not None:
            msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")
    for filename, content_type, data in attachments:
        maintype, subtype = content_type.split("/")
        msg.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)
    return msg.as_bytes()


class FakeMailStore:
    """In-memory mailbox: uid -> (stored Message-ID header, raw bytes)."""

    def __init__(self) -> None:
        self.messages: dict[int, tuple[str, bytes]] = {}
        self.internal_dates: dict[int, datetime] = {}
        self.search_calls: list[list] = []
        self.search_charsets: list[str | None] = []
        self.fetch_calls: list[tuple[list[int], list[str]]] = []

    def add(self, uid: int, raw: bytes, message_id: str, internal_date: datetime | None = None) -> None:
        self.messages[uid] = (message_id, raw)
        self.internal_dates[uid] = internal_date or datetime(2026, 1, 13, 10, 0, 0)

    def search(self, criteria: list, charset: str | None = None) -> list[int]:
        self.search_calls.append(list(criteria))
        self.search_charsets.append(charset)
        if criteria[0] == "HEADER":
            value = criteria[2]
            return [uid for uid, (mid, _) in sorted(self.messages.items()) if mid == value]
        if criteria[0] == "TEXT":
            needle = criteria[1].encode()
            return [uid for uid, (_, raw) in sorted(self.messages.items()) if needle in raw]
        return sorted(self.messages)

    def fetch(self, uids: list[int], items: list[str]) -> dict:
        self.fetch_calls.append((list(uids), list(items)))
        response = {}
        for uid in uids:
            if uid not in self.messages:
                continue
            raw = self.messages[uid][1]
            if "BODY.PEEK[]" in items:
                response[uid] = {b"SEQ": uid, b"BODY[]": raw}
            else:
                header_block = raw.split(b"\n\n", 1)[0] + b"\n\n"
                response[uid] = {
                    b"SEQ": uid,
                    SUMMARY_KEY: header_block,
                    b"INTERNALDATE": self.internal_dates[uid],
                }
        return response


