"""Deferred link queue and MarkdownV2 link rendering."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from urllib.parse import urlparse

from html_tg.config import LinkDescriptor
from html_tg.escape import close_trailing_escape, escape_link_target, escape_markdown_v2

# Hosts that Telegram rejects for text links
_INVALID_HOSTS = frozenset({'localhost', '127.0.0.1', '0.0.0.0', '::1'})


class LinkQueue:
    """Ordered FIFO of link descriptors for one email body.

    The transducer appends a descriptor for every placeholder marker it
    emits; the chunker pops them back in the same order. One queue per
    document, never shared between emails.
    """

    def __init__(self) -> None:
        self._items: deque[LinkDescriptor] = deque()

    def push(self, description: str, target: str) -> None:
        self._items.append(LinkDescriptor(description=description, target=target))

    def pop(self) -> LinkDescriptor:
        """Remove and return the oldest descriptor.

        Raises:
            IndexError: If the queue is empty
        """
        return self._items.popleft()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[LinkDescriptor]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f'LinkQueue({list(self._items)!r})'


def is_valid_telegram_url(url: str) -> bool:
    """Check if URL is usable as a Telegram text link.

    Telegram requires http://, https://, or tg:// URLs with valid public hosts.

    Args:
        url: URL string to validate

    Returns:
        True if URL is valid for a Telegram text link
    """
    try:
        parsed = urlparse(url)
        scheme = parsed.scheme.lower()
    except (ValueError, AttributeError):
        return False

    # tg:// deep links are always valid
    if scheme == 'tg':
        return True

    if scheme not in ('http', 'https'):
        return False

    try:
        host = parsed.hostname
    except ValueError:
        return False
    if not host:
        return False

    host = host.lower()
    return host not in _INVALID_HOSTS and '.' in host


def render_link(link: LinkDescriptor) -> str:
    """Render a descriptor as inline MarkdownV2, padded with spaces.

    Targets Telegram would reject are rendered as plain text with the URL in
    parentheses instead of a link.
    """
    description = close_trailing_escape(link.description)
    if is_valid_telegram_url(link.target):
        return f' [{description}]({escape_link_target(link.target)}) '
    return f' {description} \\({escape_markdown_v2(link.target)}\\) '
