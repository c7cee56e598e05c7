"""
Mailbox Session Contract
========================

Behavioral contract for the mailbox session engine and the
collaborators it consumes.

AUTHORITY: This file is the single source for result shapes, error codes
and collaborator interfaces. Import from the `contracts` package index.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


# =============================================================================
# DOMAIN TYPES
# =============================================================================

class IdType(str, Enum):
    """How a caller-supplied identifier is interpreted."""
    MESSAGE_ID = "message-id"  # stable Message-ID header value
    UID = "uid"  # store-local numeric handle, valid for one session


class BodyFormat(str, Enum):
    """Representation returned by the single-message content path."""
    HTML = "html"
    TEXT = "text"
    RAW = "raw"


@dataclass(frozen=True)
class AttachmentEntry:
    """One attachment as produced by the MIME decoder."""
    filename: str | None
    content_type: str
    content: bytes
    size: int
    content_disposition: str | None = None
    content_id: str | None = None


@dataclass(frozen=True)
class DecodedMessage:
    """Structured view of a raw message."""
    subject: str | None
    from_addr: str | None
    to_addrs: str | None
    date: str | None  # ISO8601
    message_id: str | None
    text: str | None
    html: str | None
    text_as_html: str | None
    attachments: list[AttachmentEntry] = field(default_factory=list)


@dataclass(frozen=True)
class AttachmentFilter:
    """
    Optional attachment selection.

    Filename constraints are AND'ed; exact and substring matches ignore case,
    the regex honours `name_regex_flags`. `mime_types` entries are exact
    types or `type/*` wildcards.
    """
    name: str | None = None
    name_contains: str | None = None
    name_regex: str | None = None
    name_regex_flags: str | None = None
    mime_types: list[str] | None = None


class _Record:
    """Serialization helper: drops unset optional fields."""

    def to_dict(self) -> dict[str, Any]:
        return _prune(asdict(self))


def _prune(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _prune(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_prune(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass
class AttachmentResult(_Record):
    """
    Outcome for one selected attachment.

    Exactly one of `inline_content` / `saved_to` is set on success. `error`
    is set instead when the attachment could not be persisted.
    """
    filename: str
    content_type: str
    size: int
    content_disposition: str | None = None
    content_id: str | None = None
    saved_to: str | None = None
    inline_content: str | None = None
    error: str | None = None


@dataclass
class AttachmentMeta(_Record):
    """Attachment inventory entry, no content."""
    filename: str
    content_type: str
    size: int
    content_disposition: str | None = None
    content_id: str | None = None


@dataclass
class MessageAttachmentsResult(_Record):
    id: str
    id_type: IdType
    mailbox: str
    found: bool
    uid: str | None = None
    attachments: list[AttachmentResult] = field(default_factory=list)
    error: str | None = None


@dataclass
class MessagePeekResult(_Record):
    id: str
    id_type: IdType
    mailbox: str
    found: bool
    uid: str | None = None
    subject: str | None = None
    from_addr: str | None = None
    to_addrs: str | None = None
    date: str | None = None
    message_id: str | None = None
    has_html: bool | None = None
    has_text: bool | None = None
    html_size: int | None = None
    text_size: int | None = None
    attachment_count: int = 0
    attachments: list[AttachmentMeta] = field(default_factory=list)
    error: str | None = None


@dataclass
class MessageContentResult(_Record):
    id: str
    format: BodyFormat
    body: str
    mailbox: str
    uid: str | None = None
    raw_file_path: str | None = None
    raw_size: int | None = None
    has_html: bool | None = None
    has_text: bool | None = None


@dataclass
class MessageSummary(_Record):
    id: str
    subject: str
    from_addr: str
    to_addrs: list[str]
    date: str
    snippet: str


@dataclass
class SearchResult(_Record):
    messages: list[MessageSummary]
    total_count: int
    query: str


@dataclass
class SendResult(_Record):
    message_id: str
    success: bool
    message: str


# =============================================================================
# ERROR TYPES
# =============================================================================

class EmailMCPError(Exception):
    """Base error for all mailbox operations."""
    code: str = "EMAIL_MCP_ERROR"


class ConfigurationError(EmailMCPError):
    """
    Required settings missing or malformed.

    RECOVERY: Fatal at startup. Fix the environment and restart.
    """
    code = "CONFIGURATION_ERROR"


class BiosecretDeniedError(EmailMCPError):
    """User cancelled or timed out the biometric prompt."""
    code = "BIOSECRET_DENIED"


class BiosecretNotFoundError(EmailMCPError):
    """No credentials stored under the expected keychain key."""
    code = "BIOSECRET_NOT_FOUND"


class ConnectionFailedError(EmailMCPError):
    """
    Network unreachable or host not found.

    RECOVERY: Fatal to the whole operation; no partial results.
    """
    code = "CONNECTION_FAILED"


class AuthFailedError(EmailMCPError):
    """
    Server rejected the credentials.

    RECOVERY: Fatal to the whole operation; no partial results.
    """
    code = "AUTH_FAILED"


class MailboxOpenError(EmailMCPError):
    """
    Mailbox could not be selected.

    RECOVERY: Fatal to the whole operation. Check the mailbox name.
    """
    code = "MAILBOX_OPEN_FAILED"


class NotConnectedError(EmailMCPError):
    """An exchange was attempted on a closed session."""
    code = "NOT_CONNECTED"


class MessageNotFoundError(EmailMCPError):
    """
    No message for the identifier: resolution miss or empty fetch.

    RECOVERY: Recorded on the identifier's result; batch continues.
    """
    code = "NOT_FOUND"


class FilterConstructionError(EmailMCPError):
    """
    Attachment filter regex failed to compile.

    RECOVERY: Raised before any store access. Caller must fix the filter.
    """
    code = "INVALID_FILTER"


class TransportExchangeError(EmailMCPError):
    """
    A search or fetch exchange failed before completion.

    RECOVERY: Recorded on the identifier's result; batch continues.
    """
    code = "TRANSPORT_ERROR"


class PersistenceError(EmailMCPError):
    """
    Writing to temporary storage failed.

    RECOVERY: Recorded on the attachment's result; siblings continue.
    """
    code = "PERSISTENCE_FAILED"


class SendFailedError(EmailMCPError):
    """SMTP submission failed."""
    code = "SEND_FAILED"


# =============================================================================
# COLLABORATOR CONTRACTS
# =============================================================================

@runtime_checkable
class MailboxTransport(Protocol):
    """
    One authenticated IMAP session.

    Every exchange is awaited until its terminal event; no second exchange
    starts before the first completes.

    POST: search and search_header return UIDs in server order, possibly empty.
    POST: fetch returns {uid: {item: data}}; an absent uid means not found.
    INV: open_mailbox selects read-only; fetch never sets \\Seen.

    ERRORS:
    - CONNECTION_FAILED / AUTH_FAILED from connect
    - MAILBOX_OPEN_FAILED from open_mailbox
    - TRANSPORT_ERROR from search, search_header and fetch
    """

    async def connect(self) -> None: ...

    async def open_mailbox(self, mailbox: str) -> dict: ...

    async def search(self, criteria: list) -> list[int]: ...

    async def search_header(self, header: str, value: str) -> list[int]: ...

    async def fetch(self, uids: list[int], items: list[str]) -> dict: ...

    async def close(self) -> None: ...


@runtime_checkable
class MessageDecoder(Protocol):
    """Raw RFC 822 bytes to DecodedMessage."""

    def __call__(self, raw: bytes) -> DecodedMessage: ...


@runtime_checkable
class TemporaryStorage(Protocol):
    """
    Durable temporary storage.

    POST: write returns the path of a newly created file holding exactly
          `content`.
    ERRORS:
    - PERSISTENCE_FAILED: the write did not complete
    """

    async def write(self, name: str, content: bytes) -> Path: ...
