"""Telegram MarkdownV2 escaping helpers."""

import re

# Reserved MarkdownV2 characters, unless already escaped
_RESERVED_PATTERN = re.compile(r'(?<!\\)([_*\[\]()~`>#+\-=|{}.!])')
_LINK_TARGET_PATTERN = re.compile(r'([)\\])')
_CODE_PATTERN = re.compile(r'([`\\])')


def escape_markdown_v2(text: str) -> str:
    """Escape all characters reserved by Telegram MarkdownV2.

    Idempotent: a reserved character already preceded by a backslash is left
    alone, so escaping escaped text adds nothing. Expects decoded text, HTML
    entities must be resolved before calling this.

    Examples:
        >>> print(escape_markdown_v2('1.5 (approx)'))
        1\\.5 \\(approx\\)
    """
    return _RESERVED_PATTERN.sub(r'\\\1', text)


def escape_link_target(url: str) -> str:
    """Escape the URL part of an inline link (``)`` and ``\\`` only)."""
    return _LINK_TARGET_PATTERN.sub(r'\\\1', url)


def escape_code(text: str) -> str:
    """Escape text placed inside an inline code span."""
    return _CODE_PATTERN.sub(r'\\\1', text)


def trailing_backslashes(text: str) -> int:
    return len(text) - len(text.rstrip('\\'))


def close_trailing_escape(text: str) -> str:
    """Escape a lone trailing backslash so it cannot escape what follows.

    Examples:
        >>> print(close_trailing_escape('C:\\\\'))
        C:\\\\
    """
    if trailing_backslashes(text) % 2:
        return text + '\\'
    return text
