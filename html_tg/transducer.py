"""Streaming HTML to Telegram MarkdownV2 transducer.

Walks an HTML document once, in order, through ``HTMLParser`` callbacks and
produces flat MarkdownV2 text. Links and media references are not rendered
inline: each one becomes a placeholder marker in the text and a descriptor
in a ``LinkQueue``, so the chunker can later re-insert the full link markup
without ever cutting it in half.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from html.parser import HTMLParser
import logging
import re

from html_tg.config import DEFAULT_CONFIG, TransducerConfig
from html_tg.escape import close_trailing_escape, escape_markdown_v2
from html_tg.links import LinkQueue

LOGGER = logging.getLogger(__name__)

# Elements whose whole subtree is dropped
SKIPPED_TAGS = frozenset(
    {'style', 'script', 'head', 'title', 'noscript', 'template'}
)

# Void elements dropped without further effect
SKIPPED_VOID_TAGS = frozenset({'meta', 'link', 'base'})

# Inline elements: their text stays on the current line
INLINE_TAGS = frozenset(
    {
        'span', 'strong', 'em', 'b', 'i', 'u', 's', 'del', 'ins', 'sub', 'sup',
        'small', 'font', 'code', 'mark', 'strike', 'abbr', 'label', 'a',
    }
)

CELL_TAGS = frozenset({'td', 'th'})

VOID_TAGS = frozenset(
    {
        'area', 'base', 'br', 'col', 'embed', 'hr', 'img', 'input', 'link',
        'meta', 'source', 'track', 'wbr',
    }
)

_WHITESPACE = re.compile(r'\s+')

# Zero-width and invisible characters (ZWJ is kept, emoji sequences need it)
_INVISIBLE = re.compile(
    "[\u00ad\u034f\u061c\u115f\u1160\u17b4\u17b5\u180e\u200b\u200c\u200e\u200f"
    "\u202a-\u202e\u2060-\u2064\u206a-\u206f\u3164\ufeff\uffa0]"
)

_LEADING_DOCTYPE = re.compile(r'^\s*<!doctype[^>]*>', re.IGNORECASE)
_LINE_PADDING = re.compile(r'[ \t]+(?=\n)|(?<=\n)[ \t]+')
_BLANK_LINES = re.compile(r'\n{2,}')


def clean_text(text: str, config: TransducerConfig | None = None) -> str:
    """Drop marker and invisible characters from decoded email content.

    Apply to every piece of sender-controlled text (body runs and header
    fields alike) before escaping, so content can never forge a marker.
    """
    config = config or DEFAULT_CONFIG
    return _INVISIBLE.sub('', text.replace(config.link_marker_char, ''))


@dataclass
class TransducedBody:
    """Result of transducing one email body.

    Attributes:
        text: MarkdownV2 text with one placeholder marker per queued link
        links: Descriptors for the markers, in document order
    """

    text: str
    links: LinkQueue = field(default_factory=LinkQueue)


class HtmlTransducer(HTMLParser):
    """Single-pass HTML visitor producing marker-laden MarkdownV2 text.

    One instance handles one document: all state (tag stack, pending anchor,
    pending media, link queue) lives on the instance.

    Attributes:
        config: Marker and fallback settings
        links: Queue receiving one descriptor per emitted marker
    """

    def __init__(self, config: TransducerConfig | None = None) -> None:
        super().__init__(convert_charrefs=True)
        self.config = config or DEFAULT_CONFIG
        self.links = LinkQueue()
        self._marker = self.config.link_marker
        self._output: list[str] = []
        self._line_start = True
        self._tag_stack: list[str] = []

        # Skipped subtree (style, script, head, ...)
        self._skip_tag: str | None = None
        self._skip_nesting = 0

        self._pre_depth = 0

        # Anchor state
        self._in_anchor = False
        self._anchor_target: str | None = None
        self._anchor_text: list[str] = []
        self._anchor_alt = ''

        # Container media state (video, audio, iframe)
        self._media_tag: str | None = None
        self._media_src: str | None = None
        self._media_nested = False

    # ------------------------------------------------------------------
    # HTMLParser callbacks
    # ------------------------------------------------------------------

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._skip_tag is not None:
            if tag == self._skip_tag:
                self._skip_nesting += 1
            elif self._skip_tag == 'head' and tag == 'body':
                # </head> is optional
                self._skip_tag = None
                self._skip_nesting = 0
                self.handle_starttag(tag, attrs)
            return

        if tag in SKIPPED_VOID_TAGS:
            return
        if tag in SKIPPED_TAGS:
            self._skip_tag = tag
            self._skip_nesting = 1
            return

        self._open_element(tag, {name: value or '' for name, value in attrs})
        if tag not in VOID_TAGS:
            self._tag_stack.append(tag)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self.handle_starttag(tag, attrs)
        if tag not in VOID_TAGS:
            self.handle_endtag(tag)

    def handle_endtag(self, tag: str) -> None:
        if self._skip_tag is not None:
            if tag == self._skip_tag:
                self._skip_nesting -= 1
                if self._skip_nesting == 0:
                    self._skip_tag = None
            return

        if tag == 'br':
            # Browsers treat a stray </br> as <br>
            self._open_element('br', {})
            return

        if tag not in self._tag_stack:
            return

        # Close elements left open inside this one
        while self._tag_stack:
            open_tag = self._tag_stack.pop()
            self._close_element(open_tag)
            if open_tag == tag:
                break

    def handle_data(self, data: str) -> None:
        if self._skip_tag is not None or self._media_tag is not None:
            return

        data = clean_text(data, self.config)
        if not self._pre_depth:
            data = _WHITESPACE.sub(' ', data)

        if self._collecting_anchor:
            self._anchor_text.append(data)
            return

        if not self._pre_depth and self._line_start:
            data = data.lstrip(' ')
        # Runs never end in a lone backslash
        self._write(close_trailing_escape(escape_markdown_v2(data)))

    # Declarations (DOCTYPE), comments and processing instructions are
    # dropped by not overriding handle_decl/handle_comment/handle_pi.

    # ------------------------------------------------------------------
    # Element rules
    # ------------------------------------------------------------------

    @property
    def _collecting_anchor(self) -> bool:
        return self._in_anchor and self._anchor_target is not None

    def _open_element(self, tag: str, attrs: dict[str, str]) -> None:
        match tag:
            case 'a':
                if self._in_anchor:
                    self._finish_anchor()
                self._in_anchor = True
                self._anchor_target = attrs.get('href', '').strip() or None
                self._anchor_text = []
                self._anchor_alt = ''

            case 'img':
                src = attrs.get('src', '').strip()
                if self._collecting_anchor:
                    alt = clean_text(attrs.get('alt', ''), self.config).strip()
                    self._anchor_alt = self._anchor_alt or alt
                elif src:
                    self._emit_link(tag, src)

            case 'video' | 'audio' | 'iframe':
                self._media_tag = tag
                self._media_src = attrs.get('src', '').strip() or None
                self._media_nested = self._collecting_anchor

            case 'source':
                if self._media_tag is not None and not self._media_src:
                    self._media_src = attrs.get('src', '').strip() or None

            case 'br':
                self._newline()

            case 'pre':
                self._pre_depth += 1
                self._block_break()

            case _ if tag in INLINE_TAGS or tag in CELL_TAGS or tag in VOID_TAGS:
                pass

            case _:
                self._block_break()

    def _close_element(self, tag: str) -> None:
        match tag:
            case 'a':
                self._finish_anchor()

            case 'video' | 'audio' | 'iframe':
                if tag == self._media_tag:
                    if self._media_src and not self._media_nested:
                        self._emit_link(tag, self._media_src)
                    self._media_tag = None
                    self._media_src = None
                    self._media_nested = False

            case 'td' | 'th':
                self._space()

            case 'pre':
                self._pre_depth -= 1
                self._newline()

            case _ if tag in INLINE_TAGS:
                pass

            case _:
                self._newline()

    def _finish_anchor(self) -> None:
        """Queue the pending anchor as one link, if it has a target."""
        if self._anchor_target is not None:
            text = _WHITESPACE.sub(' ', ''.join(self._anchor_text)).strip()
            description = text or self._anchor_alt or self.config.link_fallback_description
            self._emit_link(escape_markdown_v2(description), self._anchor_target)
        self._in_anchor = False
        self._anchor_target = None
        self._anchor_text = []
        self._anchor_alt = ''

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def _emit_link(self, description: str, target: str) -> None:
        self.links.push(description, target)
        self._output.append(self._marker)
        self._line_start = False

    def _write(self, text: str) -> None:
        if not text:
            return
        self._output.append(text)
        self._line_start = text.endswith('\n')

    def _space(self) -> None:
        if self._collecting_anchor:
            self._anchor_text.append(' ')
        else:
            self._write(' ')

    def _newline(self) -> None:
        # Anchor text stays on one line
        if self._collecting_anchor:
            self._anchor_text.append(' ')
            return
        self._output.append('\n')
        self._line_start = True

    def _block_break(self) -> None:
        if not self._line_start:
            self._newline()

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def finish(self) -> TransducedBody:
        """Flush the parser, close dangling elements and clean up the text."""
        self.close()
        while self._tag_stack:
            self._close_element(self._tag_stack.pop())
        if self._in_anchor:
            self._finish_anchor()

        text = _LINE_PADDING.sub('', ''.join(self._output))
        text = _BLANK_LINES.sub('\n', text).lstrip('\n')
        return TransducedBody(text=close_trailing_escape(text), links=self.links)


def html_to_markdown_v2(
    html: str, config: TransducerConfig | None = None
) -> TransducedBody:
    """Convert an HTML document to MarkdownV2 text plus deferred links.

    A fresh transducer (and link queue) is created per call, so concurrent
    emails never share state.

    Args:
        html: Complete HTML document
        config: Marker and fallback settings (uses default if None)

    Returns:
        TransducedBody with marker-laden text and the matching link queue

    Example:
        >>> body = html_to_markdown_v2('<p>Hello <b>World</b></p>')
        >>> body.text
        'Hello World\\n'
        >>> len(body.links)
        0
    """
    html = _LEADING_DOCTYPE.sub('', html, count=1)
    transducer = HtmlTransducer(config)
    transducer.feed(html)
    body = transducer.finish()
    LOGGER.debug('Transduced %d chars of HTML, %d links queued', len(html), len(body.links))
    return body


def text_to_markdown_v2(
    text: str, config: TransducerConfig | None = None
) -> TransducedBody:
    """Escape a plain-text body; the result carries no links."""
    text = escape_markdown_v2(clean_text(text, config))
    return TransducedBody(text=close_trailing_escape(text))
