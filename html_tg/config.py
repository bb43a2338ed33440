"""Configuration and data models for HTML to Telegram conversion."""

from dataclasses import dataclass


@dataclass(frozen=True)
class LinkDescriptor:
    """A link or media reference deferred out of the text stream.

    Attributes:
        description: MarkdownV2-escaped text shown for the link
        target: Raw (unescaped) URL the link points to
    """

    description: str
    target: str


@dataclass(frozen=True)
class TransducerConfig:
    """Configuration for HTML transduction and chunking.

    This is an immutable dataclass with sensible defaults.

    Attributes:
        link_marker_char: Character repeated to build the placeholder marker.
            A private-use code point, stripped from incoming text so document
            content can never forge a marker.
        link_marker_length: Number of marker characters per placeholder
        link_fallback_description: Link text used for anchors without text
        max_chunk_length: Maximum length of a single chunk in UTF-16 code units
            (default: 3500, leaving headroom under Telegram's 4096 limit)
    """

    link_marker_char: str = '\ue000'
    link_marker_length: int = 15

    link_fallback_description: str = 'link->'

    max_chunk_length: int = 3500

    @property
    def link_marker(self) -> str:
        return self.link_marker_char * self.link_marker_length


# Default configuration instance
DEFAULT_CONFIG = TransducerConfig()
