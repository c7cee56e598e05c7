"""Shared fixtures: config under tmp_path and a patched IMAPClient."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from src.mailbox_mcp.credentials import Credentials, MailConfig
from tests.fakes import FakeMailStore


@pytest.fixture
def mail_config(tmp_path):
    """Config writing temporary files under tmp_path."""
    return MailConfig(
        credentials=Credentials(
            username="test@example.com",
            password="secret123",
            server="imap.example.com",
            port=993,
            use_ssl=True,
        ),
        smtp_server="smtp.example.com",
        smtp_port=587,
        temp_dir=str(tmp_path),
    )


@pytest.fixture
def mail_store():
    return FakeMailStore()


@pytest.fixture
def mock_imap_client(mail_store):
    """Patched IMAPClient class whose instances serve `mail_store`."""
    with patch("src.mailbox_mcp.imap_client.IMAPClient") as mock:
        client = MagicMock()
        mock.return_value = client
        client.select_folder.return_value = {
            b"EXISTS": 3,
            b"UIDVALIDITY": 12345,
            b"UIDNEXT": 1000,
        }
        client.search.side_effect = mail_store.search
        client.fetch.side_effect = mail_store.fetch
        yield mock
