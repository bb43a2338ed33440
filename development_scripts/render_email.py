"""Render a raw email into Telegram segments without sending anything.

Usage:
    python development_scripts/render_email.py message.eml [--max-length 3500]
"""

import argparse
from pathlib import Path

from html_tg.utils import utf16_len
from mail_tg.email_parser import parse_email
from mail_tg.processor import render_segments

parser = argparse.ArgumentParser()
parser.add_argument('file', help='Raw RFC 822 email file')
parser.add_argument('--max-length', type=int, default=3500)
args = parser.parse_args()

email = parse_email(Path(args.file).read_bytes())
print(f'Subject: {email.subject!r}')
print(f'Bodies: html={email.html is not None}, text={email.text is not None}')
for attachment in email.attachments:
    print(f'Attachment: {attachment.filename} ({attachment.mime_type}, {attachment.size} bytes)')
print()

segments = render_segments(email, args.max_length)
for i, segment in enumerate(segments, start=1):
    print(f'--- Segment {i}/{len(segments)}: {utf16_len(segment)} UTF-16 units ---')
    print(segment)
    print()
