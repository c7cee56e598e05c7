"""
IMAP Client Wrapper
===================

One authenticated IMAP session per top-level operation.

Each protocol exchange (select, search, fetch) is a single awaitable call
that completes when the server's tagged response arrives. The blocking
imapclient call runs in a worker thread; a per-session lock keeps at most
one exchange outstanding on the connection.

INVARIANTS:
- Mailboxes are always selected read-only
- Fetches use BODY.PEEK so the \\Seen flag is never set
- No logging of message bodies or attachments
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from imapclient import IMAPClient

from contracts import (
    AuthFailedError,
    ConnectionFailedError,
    MailboxOpenError,
    NotConnectedError,
    TransportExchangeError,
)

if TYPE_CHECKING:
    from src.mailbox_mcp.credentials import Credentials

logger = logging.getLogger(__name__)


class EmailIMAPClient:
    """
    Read-only IMAP session.

    Not reusable: connect once, run exchanges sequentially, close once.
    """

    def __init__(self, credentials: Credentials) -> None:
        self._credentials = credentials
        self._client: IMAPClient | None = None
        self._connected: bool = False
        self._mailbox: str | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        """Check if connected to server."""
        return self._connected and self._client is not None

    @property
    def mailbox(self) -> str | None:
        return self._mailbox

    async def connect(self) -> None:
        """
        Connect and authenticate to the IMAP server.

        ERRORS:
        - ConnectionFailedError: socket or TLS setup failed
        - AuthFailedError: server rejected the login
        """
        await asyncio.to_thread(self._connect_sync)
        logger.info("Connected to %s", self._credentials.server)

    def _connect_sync(self) -> None:
        credentials = self._credentials
        try:
            client = IMAPClient(
                credentials.server,
                port=credentials.port,
                ssl=credentials.use_ssl,
            )
        except Exception as e:
            raise ConnectionFailedError(f"Failed to connect: {e}") from e

        try:
            client.login(credentials.username, credentials.password)
        except Exception as e:
            try:
                client.shutdown()
            except Exception:
                pass
            raise AuthFailedError(f"Authentication failed: {e}") from e

        self._client = client
        self._connected = True

    def _require_connection(self) -> IMAPClient:
        """Ensure connected, raise NotConnectedError if not."""
        if not self._connected or self._client is None:
            raise NotConnectedError("Not connected to mail server")
        return self._client

    async def _exchange(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        async with self._lock:
            return await asyncio.to_thread(func, *args, **kwargs)

    async def open_mailbox(self, mailbox: str) -> dict:
        """
        Select `mailbox` read-only.

        POST: returns the server's SELECT response (EXISTS, UIDVALIDITY, ...)
        ERRORS:
        - MailboxOpenError: mailbox missing or not selectable
        """
        client = self._require_connection()
        try:
            info = await self._exchange(client.select_folder, mailbox, readonly=True)
        except Exception as e:
            raise MailboxOpenError(f"Failed to open mailbox {mailbox}: {e}") from e
        self._mailbox = mailbox
        return info

    async def search(self, criteria: list) -> list[int]:
        """Run a UID SEARCH and return matching UIDs."""
        client = self._require_connection()
        charset = None if all(_is_ascii(c) for c in criteria) else "UTF-8"
        try:
            results = await self._exchange(client.search, criteria, charset=charset)
        except Exception as e:
            raise TransportExchangeError(f"Search failed: {e}") from e
        return list(results or [])

    async def search_header(self, header: str, value: str) -> list[int]:
        return await self.search(["HEADER", header, value])

    async def fetch(self, uids: list[int], items: list[str]) -> dict:
        """
        UID FETCH `items` for `uids`.

        POST: {uid: {item: data}}; UIDs the server did not report are absent
        """
        client = self._require_connection()
        try:
            return await self._exchange(client.fetch, uids, items)
        except Exception as e:
            raise TransportExchangeError(f"Fetch failed: {e}") from e

    async def close(self) -> None:
        """Log out. Safe to call on a session that never connected."""
        if self._client is None:
            return
        client = self._client
        self._client = None
        self._connected = False
        self._mailbox = None
        try:
            await asyncio.to_thread(client.logout)
        except Exception as e:
            logger.debug("Logout failed: %s", e)
        logger.info("Disconnected from %s", self._credentials.server)


def _is_ascii(criterion: Any) -> bool:
    if isinstance(criterion, str):
        return criterion.isascii()
    if isinstance(criterion, bytes):
        return criterion.isascii()
    return True
