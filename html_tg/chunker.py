"""Length-bounded chunking with deferred link re-insertion.

Splits the transducer's marker-laden text into Telegram-sized segments and
substitutes every placeholder marker with its queued link markup. Plain text
may be cut anywhere; rendered link markup is always moved whole into the
next segment.
"""

from __future__ import annotations

import logging
import re

from html_tg.config import DEFAULT_CONFIG, TransducerConfig
from html_tg.escape import trailing_backslashes
from html_tg.links import LinkQueue, render_link
from html_tg.utils import utf16_len, utf16_prefix

LOGGER = logging.getLogger(__name__)


class LinkQueueMismatchError(ValueError):
    """Raised when marker count and queued link count disagree."""

    def __init__(self, markers: int, links: int) -> None:
        super().__init__(f'{markers} link markers in text but {links} links queued')
        self.markers = markers
        self.links = links


def _cut_point(text: str, max_length: int) -> int:
    """Find where to cut ``text`` so the head fits into ``max_length``.

    Does not split UTF-16 surrogate pairs, and steps back one character
    rather than leave an escape backslash dangling at the end of the head.
    """
    cut = utf16_prefix(text, max_length)
    if 1 < cut < len(text):
        if trailing_backslashes(text[:cut]) % 2:
            cut -= 1
    return max(cut, 1)


def _split_oversized(builder: str, max_length: int) -> tuple[list[str], str]:
    """Cut ``max_length`` prefixes off ``builder`` until the rest fits.

    Returns:
        Finished segments and the remaining builder
    """
    segments: list[str] = []
    while utf16_len(builder) > max_length:
        cut = _cut_point(builder, max_length)
        # Telegram rejects whitespace-only messages
        if builder[:cut].strip():
            segments.append(builder[:cut])
        builder = builder[cut:]
    return segments, builder


def chunk_markdown_v2(
    text: str,
    links: LinkQueue,
    max_length: int | None = None,
    config: TransducerConfig | None = None,
) -> list[str]:
    """Split marker-laden text into segments, re-inserting queued links.

    The queue is drained in order: the i-th marker is replaced by the i-th
    descriptor. Every segment is at most ``max_length`` UTF-16 code units
    and link markup never straddles two segments.

    Args:
        text: Transducer output containing placeholder markers
        links: Queue holding one descriptor per marker (drained by this call)
        max_length: Maximum UTF-16 length per segment
            (defaults to ``config.max_chunk_length``)
        config: Marker settings (uses default if None)

    Returns:
        Ordered list of segments with all markers resolved

    Raises:
        LinkQueueMismatchError: If the text holds a different number of
            markers than the queue holds descriptors. Checked before any
            output is produced.

    Example:
        >>> chunks = chunk_markdown_v2('Hello World\\n', LinkQueue())
        >>> chunks
        ['Hello World\\n']
    """
    config = config or DEFAULT_CONFIG
    if max_length is None:
        max_length = config.max_chunk_length
    if max_length < 1:
        raise ValueError(f'max_length must be positive, got {max_length}')

    fragments = re.split(re.escape(config.link_marker), text)
    markers = len(fragments) - 1
    if markers != len(links):
        raise LinkQueueMismatchError(markers, len(links))

    segments: list[str] = []
    builder = ''

    for fragment in fragments:
        builder += fragment
        if utf16_len(builder) > max_length:
            finished, builder = _split_oversized(builder, max_length)
            segments.extend(finished)

        if not links:
            continue

        link = links.pop()
        rendered = render_link(link)
        if utf16_len(rendered) > max_length:
            # Cannot fit in any segment: keep the description only
            LOGGER.warning('Link markup longer than %d, dropping target %r', max_length, link.target)
            builder += f' {link.description} '
            finished, builder = _split_oversized(builder, max_length)
            segments.extend(finished)
            continue

        if utf16_len(builder) + utf16_len(rendered) > max_length:
            if builder.strip():
                segments.append(builder)
            builder = ''
        builder += rendered

    if builder.strip():
        segments.append(builder)

    LOGGER.debug('Split %d chars into %d segments', len(text), len(segments))
    return segments
