"""Tests for raw email parsing."""

from email.message import EmailMessage

from conftest import build_email
import pytest

from mail_tg.email_parser import Address, EmailParseError, parse_email, read_raw_headers

# ============================================================================
# Headers
# ============================================================================


def test_headers_parsed() -> None:
    email = parse_email(build_email(text='Hello'))

    assert email.sender == Address('Alice Example', 'alice@example.com')
    assert email.to == [Address('Bob', 'bob@example.com')]
    assert email.subject == 'Quarterly report'
    assert email.date == 'Tue, 01 Oct 2024 10:30:00 +0500'


def test_multiple_recipients() -> None:
    email = parse_email(build_email(to='Bob <bob@example.com>, carol@example.com', text='x'))
    assert email.to == [Address('Bob', 'bob@example.com'), Address('', 'carol@example.com')]


def test_encoded_subject_decoded() -> None:
    raw = (
        b'From: a@example.com\r\n'
        b'Subject: =?utf-8?b?0J/RgNC40LLQtdGC?=\r\n'
        b'\r\n'
        b'body\r\n'
    )
    assert parse_email(raw).subject == 'Привет'


def test_missing_headers_default() -> None:
    email = parse_email(build_email(subject=None, sender=None, to=None, text='x'))
    assert email.sender is None
    assert email.to == []
    assert email.subject == ''


# ============================================================================
# Bodies
# ============================================================================


def test_plain_text_only() -> None:
    email = parse_email(build_email(text='Hello world'))
    assert email.text == 'Hello world\n'
    assert email.html is None


def test_html_only() -> None:
    email = parse_email(build_email(html='<p>Hello</p>'))
    assert email.html == '<p>Hello</p>\n'
    assert email.text is None


def test_multipart_alternative_keeps_both() -> None:
    email = parse_email(build_email(text='plain', html='<p>rich</p>'))
    assert email.text == 'plain\n'
    assert email.html == '<p>rich</p>\n'


def test_unknown_charset_falls_back_to_utf8() -> None:
    raw = (
        b'From: a@example.com\r\n'
        b'Content-Type: text/plain; charset="x-no-such-charset"\r\n'
        b'\r\n'
        b'caf\xc3\xa9\r\n'
    )
    assert parse_email(raw).text.startswith('café')


# ============================================================================
# Attachments
# ============================================================================


def test_attachments_extracted() -> None:
    raw = build_email(
        text='See attached',
        attachments=[
            ('report.pdf', 'application/pdf', b'%PDF-1.4 data'),
            ('photo.png', 'image/png', b'\x89PNG data'),
        ],
    )
    email = parse_email(raw)

    assert email.text == 'See attached\n'
    assert [a.filename for a in email.attachments] == ['report.pdf', 'photo.png']
    assert [a.mime_type for a in email.attachments] == ['application/pdf', 'image/png']
    assert email.attachments[0].content == b'%PDF-1.4 data'
    assert email.attachments[1].size == len(b'\x89PNG data')


def test_inline_image_with_filename_is_attachment() -> None:
    message = EmailMessage()
    message['From'] = 'a@example.com'
    message.set_content('<p>img</p>', subtype='html')
    message.add_related(b'\x89PNG', maintype='image', subtype='png', filename='logo.png', cid='<logo>')

    email = parse_email(message.as_bytes())
    assert email.html == '<p>img</p>\n'
    assert [a.filename for a in email.attachments] == ['logo.png']


def test_attachment_text_not_used_as_body() -> None:
    message = EmailMessage()
    message['From'] = 'a@example.com'
    message.set_content('body text')
    message.add_attachment('notes text', filename='notes.txt')

    email = parse_email(message.as_bytes())
    assert email.text == 'body text\n'
    assert [a.filename for a in email.attachments] == ['notes.txt']


# ============================================================================
# Failures
# ============================================================================


@pytest.mark.parametrize('raw', [b'', b'   \r\n', b'this is not an email'])
def test_unparseable_input_raises(raw: bytes) -> None:
    with pytest.raises(EmailParseError):
        parse_email(raw)


def test_read_raw_headers_lenient() -> None:
    raw = b'Subject: =?utf-8?q?Caf=C3=A9?=\r\nFrom: a@example.com\r\n\r\n\xff\xfe garbage'
    headers = read_raw_headers(raw)
    assert headers['subject'] == 'Café'
    assert headers['from'] == 'a@example.com'
    assert 'date' not in headers


def test_read_raw_headers_without_headers() -> None:
    assert read_raw_headers(b'this is not an email') == {}
    assert read_raw_headers(b'') == {}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
