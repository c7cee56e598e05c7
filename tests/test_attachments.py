"""Attachment filtering, placement and materialization tests."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from contracts import (
    AttachmentEntry,
    AttachmentFilter,
    FilterConstructionError,
    PersistenceError,
)
from src.mailbox_mcp.attachments import (
    TempFileStorage,
    build_attachment_predicate,
    describe,
    materialize,
    place,
    sanitize_filename,
    select_attachments,
)


def entry(filename, content_type="application/octet-stream", content=b"data", **kwargs):
    return AttachmentEntry(
        filename=filename,
        content_type=content_type,
        content=content,
        size=len(content),
        **kwargs,
    )


@pytest.fixture
def storage(tmp_path):
    return TempFileStorage(tmp_path)


class TestFilter:

    def test_no_filter_matches_all(self):
        predicate = build_attachment_predicate(None)
        assert predicate(entry(None)) is True

    def test_exact_name_ignores_case(self):
        predicate = build_attachment_predicate(AttachmentFilter(name="Report.PDF"))
        assert predicate(entry("report.pdf"))
        assert not predicate(entry("report.pdf.bak"))

    def test_substring_ignores_case(self):
        predicate = build_attachment_predicate(AttachmentFilter(name_contains="INVOICE"))
        assert predicate(entry("march-invoice.pdf"))
        assert not predicate(entry("receipt.pdf"))

    def test_regex_case_follows_flags(self):
        sensitive = build_attachment_predicate(AttachmentFilter(name_regex=r"^IMG_\d+"))
        insensitive = build_attachment_predicate(
            AttachmentFilter(name_regex=r"^IMG_\d+", name_regex_flags="i")
        )
        assert sensitive(entry("IMG_001.jpg"))
        assert not sensitive(entry("img_001.jpg"))
        assert insensitive(entry("img_001.jpg"))

    def test_filename_constraints_are_anded(self):
        predicate = build_attachment_predicate(
            AttachmentFilter(name_contains="report", name_regex=r"\.csv$")
        )
        assert predicate(entry("report.csv"))
        assert not predicate(entry("report.pdf"))
        assert not predicate(entry("summary.csv"))

    def test_unnamed_entry_fails_name_constraint(self):
        predicate = build_attachment_predicate(AttachmentFilter(name_contains="a"))
        assert not predicate(entry(None))

    def test_mime_wildcard(self):
        predicate = build_attachment_predicate(AttachmentFilter(mime_types=["image/*"]))
        assert predicate(entry("a.png", "image/png"))
        assert predicate(entry("a.jpg", "image/jpeg"))
        assert not predicate(entry("a.json", "application/json"))

    def test_mime_exact_ignores_case(self):
        predicate = build_attachment_predicate(AttachmentFilter(mime_types=["Application/PDF"]))
        assert predicate(entry("a.pdf", "application/pdf"))
        assert not predicate(entry("a.pdfx", "application/pdfx"))

    def test_name_and_mime_are_conjunctive(self):
        predicate = build_attachment_predicate(
            AttachmentFilter(name_contains="scan", mime_types=["image/*"])
        )
        assert predicate(entry("scan-1.png", "image/png"))
        assert not predicate(entry("scan-1.pdf", "application/pdf"))
        assert not predicate(entry("photo.png", "image/png"))

    def test_invalid_regex_fails_fast(self):
        with pytest.raises(FilterConstructionError, match="Invalid nameRegex"):
            build_attachment_predicate(AttachmentFilter(name_regex="(unclosed"))

    def test_unknown_regex_flag_fails_fast(self):
        with pytest.raises(FilterConstructionError):
            build_attachment_predicate(AttachmentFilter(name_regex="a", name_regex_flags="q"))

    def test_selection_preserves_order(self):
        entries = [entry("b.png", "image/png"), entry("x.pdf"), entry("a.png", "image/png")]
        predicate = build_attachment_predicate(AttachmentFilter(mime_types=["image/*"]))
        assert [e.filename for e in select_attachments(entries, predicate)] == ["b.png", "a.png"]


class TestPlacement:

    @pytest.mark.asyncio
    async def test_short_text_is_inline(self, storage, tmp_path):
        result = await place(storage, entry("notes.txt", "text/plain", ("é" * 999).encode()), 7)

        assert result.inline_content == "é" * 999
        assert result.saved_to is None
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_text_at_limit_is_materialized(self, storage):
        result = await place(storage, entry("notes.txt", "text/plain", b"x" * 1000), 7)

        assert result.inline_content is None
        assert Path(result.saved_to).read_bytes() == b"x" * 1000

    @pytest.mark.asyncio
    async def test_pdf_always_materialized(self, storage):
        result = await place(storage, entry("tiny.pdf", "application/pdf", b"%PDF"), 7)

        assert result.inline_content is None
        assert result.saved_to is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content_type",
        ["application/json", "application/x-yaml", "text/markdown", "text/xml", "TEXT/CSV"],
    )
    async def test_structured_text_inline(self, storage, content_type):
        result = await place(storage, entry("f", content_type, b'{"a": 1}'), 1)
        assert result.inline_content == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_metadata_carried(self, storage):
        attachment = entry(
            "logo.png", "image/png", b"\x89PNG",
            content_disposition="inline", content_id="logo@x",
        )
        result = await place(storage, attachment, 3)

        assert result.filename == "logo.png"
        assert result.content_type == "image/png"
        assert result.size == 4
        assert result.content_disposition == "inline"
        assert result.content_id == "logo@x"

    @pytest.mark.asyncio
    async def test_write_failure_recorded_on_attachment(self):
        failing = AsyncMock()
        failing.write.side_effect = PersistenceError("Failed to write: disk full")

        result = await place(failing, entry("big.bin"), 3)

        assert result.error == "Failed to write: disk full"
        assert result.saved_to is None


class TestMaterialize:

    @pytest.mark.asyncio
    async def test_round_trip_is_byte_identical(self, storage):
        payload = bytes(range(256)) * 40
        path = await materialize(storage, payload, "blob.bin", 12)
        assert path.read_bytes() == payload

    @pytest.mark.asyncio
    async def test_name_is_token_plus_sanitized_filename(self, storage, tmp_path):
        path = await materialize(storage, b"x", "../etc\\passwd", 12)

        assert path.parent == tmp_path
        token, _, rest = path.name.partition("-")
        assert len(token) == 12
        assert rest == ".._etc_passwd"

    @pytest.mark.asyncio
    async def test_missing_filename_uses_uid_and_token(self, storage):
        path = await materialize(storage, b"x", None, 12)

        token = path.name.split("-", 1)[0]
        assert path.name == f"{token}-attachment-12-{token}"

    @pytest.mark.asyncio
    async def test_repeated_writes_do_not_collide(self, storage):
        first = await materialize(storage, b"1", "same.bin", 1)
        second = await materialize(storage, b"2", "same.bin", 1)

        assert first != second
        assert first.read_bytes() == b"1"
        assert second.read_bytes() == b"2"

    @pytest.mark.asyncio
    async def test_missing_directory_is_persistence_error(self, tmp_path):
        storage = TempFileStorage(tmp_path / "missing")
        with pytest.raises(PersistenceError):
            await materialize(storage, b"x", "a.bin", 1)


def test_sanitize_filename():
    assert sanitize_filename("a/b\\c.txt") == "a_b_c.txt"


def test_sanitize_filename_drops_control_characters():
    assert sanitize_filename("ba\x00d\r\n.pdf\x7f") == "bad.pdf"


@pytest.mark.asyncio
async def test_invalid_path_is_persistence_error(storage):
    with pytest.raises(PersistenceError):
        await storage.write("nul\x00name.bin", b"x")


def test_describe_names_unnamed_entries_by_position():
    inventory = describe([entry("a.pdf"), entry(None, "image/png", b"12345")], 8)

    assert [m.filename for m in inventory] == ["a.pdf", "attachment-8-2"]
    assert inventory[1].size == 5
    assert inventory[1].content_type == "image/png"
