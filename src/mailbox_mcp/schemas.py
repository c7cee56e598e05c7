"""Tool argument models. Field aliases are the camelCase names tools accept."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from contracts import AttachmentFilter, BodyFormat, IdType

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]
EmailStr = Annotated[str, StringConstraints(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")]
MessageIds = NonEmptyStr | Annotated[list[NonEmptyStr], Field(min_length=1)]


class ToolParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ListMessagesParams(ToolParams):
    count: int = Field(10, ge=1, le=100, description="Number of messages to retrieve")


class FindMessageParams(ToolParams):
    query: NonEmptyStr = Field(description="Text to search for")


class SendMessageParams(ToolParams):
    to: EmailStr = Field(description="Recipient email address")
    subject: NonEmptyStr
    body: NonEmptyStr
    cc: EmailStr | None = None
    bcc: EmailStr | None = None


class GetMessageParams(ToolParams):
    id: NonEmptyStr = Field(description="Message UID (or Message-ID with idType=message-id)")
    format: BodyFormat = BodyFormat.HTML
    save_raw_to_file: bool = Field(
        False,
        alias="saveRawToFile",
        description="Write the raw RFC822 message to a temp file and return its path",
    )
    mailbox: NonEmptyStr = "INBOX"
    id_type: IdType = Field(IdType.UID, alias="idType")


class AttachmentFilterParams(ToolParams):
    name: NonEmptyStr | None = Field(None, description="Exact filename match")
    name_contains: NonEmptyStr | None = Field(None, alias="nameContains")
    name_regex: NonEmptyStr | None = Field(None, alias="nameRegex")
    name_regex_flags: str | None = Field(None, alias="nameRegexFlags", description="e.g. i")
    mime_types: list[NonEmptyStr] | None = Field(
        None, alias="mimeTypes", description="Exact MIME types or wildcards like image/*"
    )

    def to_filter(self) -> AttachmentFilter:
        return AttachmentFilter(
            name=self.name,
            name_contains=self.name_contains,
            name_regex=self.name_regex,
            name_regex_flags=self.name_regex_flags,
            mime_types=list(self.mime_types) if self.mime_types else None,
        )


class PeekMessageParams(ToolParams):
    message_ids: MessageIds = Field(
        alias="messageIds", description="Message-ID header value(s) or UID(s) depending on idType"
    )
    id_type: IdType = Field(IdType.MESSAGE_ID, alias="idType")
    mailbox: NonEmptyStr = "INBOX"


class DownloadAttachmentsParams(PeekMessageParams):
    filter: AttachmentFilterParams | None = None
