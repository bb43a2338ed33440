"""Utility functions for HTML to Telegram conversion."""


def utf16_len(text: str) -> int:
    """Calculate length in UTF-16 code units (for Telegram API).

    Telegram measures message length in UTF-16 code units, so chunk limits
    are enforced with this function rather than ``len()``.

    Args:
        text: Input text string

    Returns:
        Length in UTF-16 code units

    Examples:
        >>> utf16_len("Hello")
        5
        >>> utf16_len("\N{EARTH GLOBE EUROPE-AFRICA}")
        2
    """
    return len(text.encode('utf-16-le')) // 2


def utf16_prefix(text: str, max_length: int) -> int:
    """Return the index of the longest prefix fitting into ``max_length`` units.

    Never splits a surrogate pair: a character that does not fit completely
    is left out of the prefix.

    Args:
        text: Text to measure
        max_length: Maximum UTF-16 length of the prefix

    Returns:
        Number of Python characters in the prefix
    """
    if utf16_len(text) <= max_length:
        return len(text)

    length = 0
    for pos, char in enumerate(text):
        length += 2 if ord(char) > 0xFFFF else 1
        if length > max_length:
            return pos
    return len(text)
