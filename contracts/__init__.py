"""
Mailbox MCP Contract Index
==========================

AUTHORITY: This file is the single entrypoint for all mailbox contracts.
Import from here, not from individual contract files.
"""

from contracts.mailbox_contract import (
    AttachmentEntry,
    AttachmentFilter,
    AttachmentMeta,
    AttachmentResult,
    AuthFailedError,
    BiosecretDeniedError,
    BiosecretNotFoundError,
    BodyFormat,
    ConfigurationError,
    ConnectionFailedError,
    DecodedMessage,
    # Error Types
    EmailMCPError,
    FilterConstructionError,
    # Domain Types
    IdType,
    MailboxOpenError,
    # Collaborator Contracts
    MailboxTransport,
    MessageAttachmentsResult,
    MessageContentResult,
    MessageDecoder,
    MessageNotFoundError,
    MessagePeekResult,
    MessageSummary,
    NotConnectedError,
    PersistenceError,
    SearchResult,
    SendFailedError,
    SendResult,
    TemporaryStorage,
    TransportExchangeError,
)

__all__ = [
    # Domain Types
    "IdType",
    "BodyFormat",
    "AttachmentEntry",
    "DecodedMessage",
    "AttachmentFilter",
    "AttachmentResult",
    "AttachmentMeta",
    "MessageAttachmentsResult",
    "MessagePeekResult",
    "MessageContentResult",
    "MessageSummary",
    "SearchResult",
    "SendResult",
    # Error Types
    "EmailMCPError",
    "ConfigurationError",
    "BiosecretDeniedError",
    "BiosecretNotFoundError",
    "ConnectionFailedError",
    "AuthFailedError",
    "MailboxOpenError",
    "NotConnectedError",
    "MessageNotFoundError",
    "FilterConstructionError",
    "TransportExchangeError",
    "PersistenceError",
    "SendFailedError",
    # Collaborator Contracts
    "MailboxTransport",
    "MessageDecoder",
    "TemporaryStorage",
]
