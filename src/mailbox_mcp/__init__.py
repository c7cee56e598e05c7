"""
Mailbox MCP Server
==================

MCP server giving AI agents read access to an IMAP mailbox (peek, content,
attachment download) and a stateless SMTP send.
"""

__version__ = "0.1.0"

from src.mailbox_mcp.credentials import Credentials, MailConfig, load_config_from_env
from src.mailbox_mcp.engine import MailboxSessionEngine
from src.mailbox_mcp.imap_client import EmailIMAPClient
from src.mailbox_mcp.server import EmailMCPServer, create_server

__all__ = [
    "EmailMCPServer",
    "create_server",
    "MailboxSessionEngine",
    "EmailIMAPClient",
    "Credentials",
    "MailConfig",
    "load_config_from_env",
]
