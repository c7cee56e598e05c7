"""
Mailbox Session Engine
======================

Runs one IMAP session per operation:

    connect -> login -> select (read-only)
      -> per identifier: resolve -> fetch -> decode -> policy
      -> logout

Connect, login and select failures abort the operation. Once the mailbox is
open, every identifier yields exactly one result record, in input order;
a failing identifier never stops the rest of the batch. The session is
closed on every exit path.

INVARIANTS:
- Identifiers are processed strictly one after another
- Messages are never marked read (read-only select + BODY.PEEK)
- No logging of message bodies or attachments
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from contracts import (
    AttachmentFilter,
    BodyFormat,
    DecodedMessage,
    IdType,
    MailboxTransport,
    MessageAttachmentsResult,
    MessageContentResult,
    MessageDecoder,
    MessageNotFoundError,
    MessagePeekResult,
    MessageSummary,
    SearchResult,
    TemporaryStorage,
)
from src.mailbox_mcp.attachments import (
    AttachmentPredicate,
    TempFileStorage,
    build_attachment_predicate,
    describe,
    new_token,
    place,
    select_attachments,
)
from src.mailbox_mcp.credentials import MailConfig
from src.mailbox_mcp.decoder import decode_message, parse_summary
from src.mailbox_mcp.identifiers import normalize_ids, parse_uid, resolve
from src.mailbox_mcp.imap_client import EmailIMAPClient
from src.mailbox_mcp.rendering import html_to_text
from src.mailbox_mcp.retriever import fetch_raw

logger = logging.getLogger(__name__)

DEFAULT_MAILBOX = "INBOX"
SEARCH_RESULT_LIMIT = 50
SUMMARY_FETCH_ITEMS = ["BODY.PEEK[HEADER.FIELDS (FROM TO SUBJECT DATE)]", "INTERNALDATE"]
_SUMMARY_BODY_KEY = b"BODY[HEADER.FIELDS (FROM TO SUBJECT DATE)]"


# =============================================================================
# PER-MESSAGE POLICIES
# =============================================================================

class MessagePolicy:
    """What the pipeline produces for each identifier."""

    def not_found(self, identifier: str, id_type: IdType, mailbox: str, error: str) -> Any:
        raise NotImplementedError

    async def build(
        self, identifier: str, id_type: IdType, mailbox: str, uid: int, message: DecodedMessage
    ) -> Any:
        raise NotImplementedError


class AttachmentDownloadPolicy(MessagePolicy):
    """Select attachments and inline or materialize each one."""

    def __init__(self, predicate: AttachmentPredicate, storage: TemporaryStorage) -> None:
        self.predicate = predicate
        self.storage = storage

    def not_found(self, identifier, id_type, mailbox, error):
        return MessageAttachmentsResult(
            id=identifier, id_type=id_type, mailbox=mailbox, found=False, error=error
        )

    async def build(self, identifier, id_type, mailbox, uid, message):
        processed = []
        for attachment in select_attachments(message.attachments, self.predicate):
            processed.append(await place(self.storage, attachment, uid))
        return MessageAttachmentsResult(
            id=identifier,
            id_type=id_type,
            mailbox=mailbox,
            found=True,
            uid=str(uid),
            attachments=processed,
        )


class PeekPolicy(MessagePolicy):
    """Header and body metadata plus an attachment inventory, no content."""

    def not_found(self, identifier, id_type, mailbox, error):
        return MessagePeekResult(
            id=identifier, id_type=id_type, mailbox=mailbox, found=False, error=error
        )

    async def build(self, identifier, id_type, mailbox, uid, message):
        inventory = describe(message.attachments, uid)
        return MessagePeekResult(
            id=identifier,
            id_type=id_type,
            mailbox=mailbox,
            found=True,
            uid=str(uid),
            subject=message.subject,
            from_addr=message.from_addr,
            to_addrs=message.to_addrs,
            date=message.date,
            message_id=message.message_id,
            has_html=bool(message.html),
            has_text=bool(message.text),
            html_size=len(message.html or ""),
            text_size=len(message.text or ""),
            attachment_count=len(inventory),
            attachments=inventory,
        )


# =============================================================================
# ENGINE
# =============================================================================

class MailboxSessionEngine:
    """
    Stateless between operations; holds only immutable configuration.

    `session_factory` and `decoder` are injectable for tests.
    """

    def __init__(
        self,
        config: MailConfig,
        *,
        session_factory: Callable[..., MailboxTransport] = EmailIMAPClient,
        decoder: MessageDecoder = decode_message,
        storage: TemporaryStorage | None = None,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._decoder = decoder
        self._storage = storage or TempFileStorage(config.temp_dir)

    @asynccontextmanager
    async def open_session(self, mailbox: str) -> AsyncIterator[MailboxTransport]:
        """Connected session with `mailbox` selected read-only."""
        session = self._session_factory(self._config.credentials)
        try:
            await session.connect()
            await session.open_mailbox(mailbox)
            yield session
        finally:
            await session.close()

    async def run(
        self,
        ids: str | list[str],
        id_type: IdType,
        mailbox: str,
        policy: MessagePolicy,
    ) -> list[Any]:
        """One result per identifier, in input order."""
        identifiers = normalize_ids(ids)
        results = []
        async with self.open_session(mailbox) as session:
            for identifier in identifiers:
                results.append(
                    await self._process(session, identifier, id_type, mailbox, policy)
                )
        return results

    async def _process(
        self,
        session: MailboxTransport,
        identifier: str,
        id_type: IdType,
        mailbox: str,
        policy: MessagePolicy,
    ) -> Any:
        try:
            uid = await resolve(session, identifier, id_type)
            if uid is None:
                return policy.not_found(
                    identifier, id_type, mailbox,
                    f"Message not found for {id_type.value}: {identifier}",
                )
            raw = await fetch_raw(session, uid)
            message = self._decoder(raw)
            return await policy.build(identifier, id_type, mailbox, uid, message)
        except Exception as e:
            # Per-identifier failures become that identifier's record.
            logger.warning("Identifier failed in %s: %s", mailbox, e)
            return policy.not_found(identifier, id_type, mailbox, str(e) or e.__class__.__name__)

    async def download_attachments(
        self,
        ids: str | list[str],
        id_type: IdType = IdType.MESSAGE_ID,
        mailbox: str = DEFAULT_MAILBOX,
        attachment_filter: AttachmentFilter | None = None,
    ) -> list[MessageAttachmentsResult]:
        # Built before connecting: an invalid regex fails without store access.
        predicate = build_attachment_predicate(attachment_filter)
        policy = AttachmentDownloadPolicy(predicate, self._storage)
        logger.info("Downloading attachments for %d message(s) in %s",
                    len(normalize_ids(ids)), mailbox)
        return await self.run(ids, id_type, mailbox, policy)

    async def peek_messages(
        self,
        ids: str | list[str],
        id_type: IdType = IdType.MESSAGE_ID,
        mailbox: str = DEFAULT_MAILBOX,
    ) -> list[MessagePeekResult]:
        logger.info("Peeking %d message(s) in %s", len(normalize_ids(ids)), mailbox)
        return await self.run(ids, id_type, mailbox, PeekPolicy())

    async def get_message_content(
        self,
        identifier: str,
        format: BodyFormat = BodyFormat.HTML,
        save_raw_to_file: bool = False,
        mailbox: str = DEFAULT_MAILBOX,
        id_type: IdType = IdType.UID,
    ) -> MessageContentResult:
        """
        Fetch one message body in the requested representation.

        No batch semantics: every failure propagates.

        ERRORS:
        - MessageNotFoundError: identifier invalid or unmatched
        - ConnectionFailedError / AuthFailedError / MailboxOpenError
        - TransportExchangeError / PersistenceError
        """
        if id_type == IdType.UID and parse_uid(identifier) is None:
            raise MessageNotFoundError(f"Invalid message id: {identifier}")

        logger.info("Fetching message content from %s as %s", mailbox, format.value)
        async with self.open_session(mailbox) as session:
            uid = await resolve(session, identifier, id_type)
            if uid is None:
                raise MessageNotFoundError(f"Message not found for id: {identifier}")
            raw = await fetch_raw(session, uid)

        result = MessageContentResult(
            id=identifier, format=format, body="", mailbox=mailbox, uid=str(uid)
        )
        if format == BodyFormat.RAW:
            result.body = raw.decode("utf-8", errors="replace")
        else:
            message = self._decoder(raw)
            result.has_html = bool(message.html)
            result.has_text = bool(message.text)
            result.body = _render_body(message, format)

        if save_raw_to_file:
            path = await self._storage.write(f"message-{uid}-{new_token()}.eml", raw)
            result.raw_file_path = str(path)
            result.raw_size = len(raw)
        return result

    async def list_messages(self, count: int = 10) -> list[MessageSummary]:
        """Most recent `count` INBOX messages, newest first."""
        logger.info("Listing %d recent messages", count)
        async with self.open_session(DEFAULT_MAILBOX) as session:
            uids = sorted(await session.search(["ALL"]))
            return await self._summaries(session, uids[-count:] if count > 0 else [])

    async def search_messages(self, query: str) -> SearchResult:
        """Full-text INBOX search; at most SEARCH_RESULT_LIMIT summaries."""
        logger.info("Searching messages")
        async with self.open_session(DEFAULT_MAILBOX) as session:
            uids = await session.search(["TEXT", query])
            messages = await self._summaries(session, uids[:SEARCH_RESULT_LIMIT])
        return SearchResult(messages=messages, total_count=len(uids), query=query)

    async def _summaries(self, session: MailboxTransport, uids: list[int]) -> list[MessageSummary]:
        if not uids:
            return []
        response = await session.fetch(uids, SUMMARY_FETCH_ITEMS)
        dated: list[tuple[float, MessageSummary]] = []
        for uid, data in response.items():
            internal_date = data.get(b"INTERNALDATE")
            summary = parse_summary(uid, data.get(_SUMMARY_BODY_KEY, b""), internal_date)
            dated.append((_timestamp(internal_date), summary))
        dated.sort(key=lambda item: item[0], reverse=True)
        return [summary for _, summary in dated]


def _render_body(message: DecodedMessage, format: BodyFormat) -> str:
    if format == BodyFormat.HTML:
        return message.html or message.text_as_html or message.text or ""
    if message.text:
        return message.text
    if message.html:
        return html_to_text(message.html)
    if message.text_as_html:
        return html_to_text(message.text_as_html)
    return ""


def _timestamp(value: datetime | None) -> float:
    return value.timestamp() if isinstance(value, datetime) else 0.0
