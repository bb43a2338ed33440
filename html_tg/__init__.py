"""HTML to Telegram MarkdownV2 converter with size-bounded chunking.

This module converts an HTML (or plain-text) email body into MarkdownV2
text and splits it into messages that fit Telegram's length limit, keeping
every link intact.

Example:
    >>> from html_tg import chunk_markdown_v2, html_to_markdown_v2
    >>> body = html_to_markdown_v2('<p>See <a href="https://example.com">docs</a></p>')
    >>> chunk_markdown_v2(body.text, body.links)
    ['See  [docs](https://example.com) \\n']
"""

from html_tg.chunker import LinkQueueMismatchError, chunk_markdown_v2
from html_tg.config import DEFAULT_CONFIG, LinkDescriptor, TransducerConfig
from html_tg.escape import escape_markdown_v2
from html_tg.links import LinkQueue
from html_tg.transducer import (
    TransducedBody,
    clean_text,
    html_to_markdown_v2,
    text_to_markdown_v2,
)

__version__ = '0.1.0'

__all__ = [
    'html_to_markdown_v2',
    'text_to_markdown_v2',
    'chunk_markdown_v2',
    'escape_markdown_v2',
    'clean_text',
    'LinkQueue',
    'LinkDescriptor',
    'LinkQueueMismatchError',
    'TransducedBody',
    'TransducerConfig',
    'DEFAULT_CONFIG',
]
