"""MIME decoding tests."""

from datetime import datetime

from src.mailbox_mcp.decoder import decode_message, parse_summary

from tests.fakes import build_raw_email


def test_headers_and_bodies():
    raw = build_raw_email(text="Plain body", html="<p>Rich body</p>")
    message = decode_message(raw)

    assert message.subject == "Quarterly report"
    assert message.from_addr == "Sender <sender@example.com>"
    assert message.to_addrs == "Recipient <recipient@example.com>"
    assert message.message_id == "<a@b>"
    assert message.date == "2026-01-13T10:00:00+00:00"
    assert message.text.strip() == "Plain body"
    assert message.html.strip() == "<p>Rich body</p>"
    assert message.text_as_html == "<p>Plain body</p>"
    assert message.attachments == []


def test_attachments_in_order_with_exact_bytes():
    png = b"\x89PNG\r\n\x1a\n\x00\xff"
    raw = build_raw_email(
        attachments=(
            ("notes.txt", "text/plain", b"hello"),
            ("image.png", "image/png", png),
        )
    )
    attachments = decode_message(raw).attachments

    assert [a.filename for a in attachments] == ["notes.txt", "image.png"]
    assert attachments[0].content == b"hello"
    assert attachments[1].content == png
    assert attachments[1].size == len(png)
    assert attachments[1].content_disposition == "attachment"


def test_inline_image_with_content_id():
    raw = (
        b"From: a@example.com\n"
        b"Subject: cid\n"
        b"Message-ID: <cid@x>\n"
        b"MIME-Version: 1.0\n"
        b'Content-Type: multipart/related; boundary="B"\n'
        b"\n"
        b"--B\n"
        b"Content-Type: text/html\n"
        b"\n"
        b'<img src="cid:logo@x">\n'
        b"--B\n"
        b"Content-Type: image/gif\n"
        b"Content-Transfer-Encoding: base64\n"
        b"Content-ID: <logo@x>\n"
        b"Content-Disposition: inline\n"
        b"\n"
        b"R0lGODlh\n"
        b"--B--\n"
    )
    message = decode_message(raw)

    assert message.html is not None
    assert len(message.attachments) == 1
    logo = message.attachments[0]
    assert logo.filename is None
    assert logo.content_id == "logo@x"
    assert logo.content_disposition == "inline"
    assert logo.content == b"GIF89a"


def test_forwarded_message_is_one_attachment():
    raw = (
        b"From: a@example.com\n"
        b"Subject: fwd\n"
        b"MIME-Version: 1.0\n"
        b'Content-Type: multipart/mixed; boundary="B"\n'
        b"\n"
        b"--B\n"
        b"Content-Type: text/plain\n"
        b"\n"
        b"see below\n"
        b"--B\n"
        b"Content-Type: message/rfc822\n"
        b"\n"
        b"Subject: inner\n"
        b"Content-Type: text/plain\n"
        b"\n"
        b"inner body\n"
        b"--B--\n"
    )
    message = decode_message(raw)

    assert len(message.attachments) == 1
    assert message.attachments[0].content_type == "message/rfc822"
    assert b"inner body" in message.attachments[0].content
    assert message.text.strip() == "see below"


def test_html_only_message():
    message = decode_message(build_raw_email(text=None, html="<b>hi</b>"))

    assert message.text is None
    assert message.html.strip() == "<b>hi</b>"
    assert message.text_as_html is None


def test_parse_summary_defaults():
    summary = parse_summary(9, b"From: \n\n", None)

    assert summary.id == "9"
    assert summary.subject == "(No Subject)"
    assert summary.to_addrs == []
    assert summary.snippet == "(No Subject) - Unknown sender"


def test_parse_summary_uses_internal_date():
    headers = b"Subject: Hello\nFrom: Bob <bob@example.com>\nTo: me@example.com\n\n"
    summary = parse_summary(3, headers, datetime(2026, 2, 1, 8, 30))

    assert summary.date == "2026-02-01T08:30:00"
    assert summary.from_addr == "Bob <bob@example.com>"
    assert summary.to_addrs == ["me@example.com"]
    assert summary.snippet == "Hello - Bob <bob@example.com>"
