"""
Input sanitization for user-provided text.

Questions and file names are echoed back in the UI and stored in the
database, so HTML tags are stripped and file names are reduced to a
single safe path component.
"""

import re
from typing import Any, Optional

_HTML_TAG = re.compile(r"<[^>]*>")


def strip_html(value: str) -> str:
    """Strip all HTML/XML tags from a string."""
    return _HTML_TAG.sub("", value)


def sanitize_input(value: Any) -> Optional[str]:
    """
    Strip HTML tags and surrounding whitespace.

    Returns:
        The cleaned string, or None when the input is not a string
        or nothing is left after cleaning.
    """
    if not isinstance(value, str):
        return None
    cleaned = strip_html(value).strip()
    return cleaned or None


def sanitize_filename(filename: str) -> str:
    """Replace path separators and traversal sequences, drop null bytes."""
    name = re.sub(r"[\\/]", "_", filename)
    name = name.replace("\0", "")
    name = name.replace("..", "_")
    return name.strip()
