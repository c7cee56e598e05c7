"""
Mailbox MCP Server
==================

MCP server exposing mailbox read tools and a stateless send tool.

INVARIANTS ENFORCED:
- Reads never mark messages as read
- One IMAP session per tool call, closed before the call returns
- No logging of message bodies, attachments or credentials
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from pydantic import ValidationError

from contracts import EmailMCPError
from src.mailbox_mcp.credentials import MailConfig, load_config_from_env
from src.mailbox_mcp.engine import MailboxSessionEngine
from src.mailbox_mcp.schemas import (
    DownloadAttachmentsParams,
    FindMessageParams,
    GetMessageParams,
    ListMessagesParams,
    PeekMessageParams,
    SendMessageParams,
    ToolParams,
)
from src.mailbox_mcp.smtp_client import SMTPSender

# Configure logging to NEVER include message content; stderr keeps stdio clean
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("mailbox-mcp")

_TOOLS: dict[str, tuple[str, type[ToolParams]]] = {
    "listMessages": ("List recent messages from the inbox", ListMessagesParams),
    "findMessage": ("Search for messages containing specific words or phrases", FindMessageParams),
    "sendMessage": ("Send an email message", SendMessageParams),
    "getMessage": (
        "Fetch a single message body as HTML, text, or raw, optionally saving "
        "the raw message to a temp file",
        GetMessageParams,
    ),
    "downloadAttachments": (
        "Download attachments for one or more message IDs",
        DownloadAttachmentsParams,
    ),
    "peekMessage": (
        "Peek message headers/body metadata and attachment summaries",
        PeekMessageParams,
    ),
    "headMessage": (
        "Alias for peekMessage: message headers/body metadata and attachment summaries",
        PeekMessageParams,
    ),
}


class EmailMCPServer:
    """Mailbox MCP server bound to one immutable MailConfig."""

    def __init__(
        self,
        config: MailConfig,
        *,
        engine: MailboxSessionEngine | None = None,
        sender: SMTPSender | None = None,
    ) -> None:
        self._config = config
        self._engine = engine or MailboxSessionEngine(config)
        self._sender = sender or SMTPSender(config)
        self._server = Server("mailbox-mcp")
        self._setup_tools()

    def _setup_tools(self) -> None:
        """Register MCP tools."""

        @self._server.list_tools()
        async def list_tools() -> list[Tool]:
            return self.tool_definitions()

        @self._server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            return await self.dispatch(name, arguments)

    def tool_definitions(self) -> list[Tool]:
        return [
            Tool(
                name=name,
                description=description,
                inputSchema=params.model_json_schema(by_alias=True),
            )
            for name, (description, params) in _TOOLS.items()
        ]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        """Validate arguments, run the tool and serialize its result."""
        if name not in _TOOLS:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

        _, params_model = _TOOLS[name]
        try:
            params = params_model.model_validate(arguments or {})
            result = await self._invoke(name, params)
        except ValidationError as e:
            return [TextContent(type="text", text=f"Error: ValidationError: {e}")]
        except EmailMCPError as e:
            logger.warning("%s failed: %s", name, e.__class__.__name__)
            return [TextContent(type="text", text=f"Error: {e.__class__.__name__}: {e}")]

        return [TextContent(type="text", text=self._serialize_result(result))]

    async def _invoke(self, name: str, params: Any) -> dict:
        if name == "listMessages":
            return await self.list_messages(params)
        if name == "findMessage":
            return await self.find_message(params)
        if name == "sendMessage":
            return await self.send_message(params)
        if name == "getMessage":
            return await self.get_message(params)
        if name == "downloadAttachments":
            return await self.download_attachments(params)
        return await self.peek_message(params)

    async def list_messages(self, params: ListMessagesParams) -> dict:
        messages = await self._engine.list_messages(params.count)
        return {
            "success": True,
            "count": len(messages),
            "messages": [m.to_dict() for m in messages],
        }

    async def find_message(self, params: FindMessageParams) -> dict:
        result = await self._engine.search_messages(params.query)
        return {
            "success": True,
            "query": result.query,
            "total_count": result.total_count,
            "found_messages": len(result.messages),
            "messages": [m.to_dict() for m in result.messages],
        }

    async def send_message(self, params: SendMessageParams) -> dict:
        result = await self._sender.send_message(
            to=params.to,
            subject=params.subject,
            body=params.body,
            cc=params.cc,
            bcc=params.bcc,
        )
        return result.to_dict()

    async def get_message(self, params: GetMessageParams) -> dict:
        result = await self._engine.get_message_content(
            params.id,
            format=params.format,
            save_raw_to_file=params.save_raw_to_file,
            mailbox=params.mailbox,
            id_type=params.id_type,
        )
        return {"success": True, **result.to_dict()}

    async def download_attachments(self, params: DownloadAttachmentsParams) -> dict:
        results = await self._engine.download_attachments(
            params.message_ids,
            id_type=params.id_type,
            mailbox=params.mailbox,
            attachment_filter=params.filter.to_filter() if params.filter else None,
        )
        return {"success": True, "results": [r.to_dict() for r in results]}

    async def peek_message(self, params: PeekMessageParams) -> dict:
        results = await self._engine.peek_messages(
            params.message_ids, id_type=params.id_type, mailbox=params.mailbox
        )
        return {"success": True, "results": [r.to_dict() for r in results]}

    def _serialize_result(self, result: Any) -> str:
        """Serialize result to JSON string."""
        return json.dumps(result, indent=2, ensure_ascii=False)

    async def run(self) -> None:
        """Run the MCP server."""
        async with stdio_server() as (read_stream, write_stream):
            await self._server.run(
                read_stream, write_stream, self._server.create_initialization_options()
            )


def create_server(config: MailConfig) -> EmailMCPServer:
    """Create a new server instance."""
    return EmailMCPServer(config)


def main() -> None:
    """Console entry point: configure from the environment and serve stdio."""
    try:
        config = load_config_from_env()
    except EmailMCPError as e:
        logger.error("Failed to load config from environment: %s", e)
        logger.error(
            "Required: EMAIL_ADDRESS and (EMAIL_PASSWORD, EMAIL_PASSWORD_FILE "
            "or EMAIL_BIOSECRET_ACCOUNT)."
        )
        sys.exit(1)

    logger.info("Mailbox MCP server running on stdio")
    asyncio.run(create_server(config).run())


if __name__ == "__main__":
    main()
