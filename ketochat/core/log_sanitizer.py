"""
Helpers for putting user-supplied text into log lines safely.
"""

import re
from typing import Any

_CONTROL_CHARS_RE = re.compile(r'[\x00-\x1f\x7f-\x9f]')
# Unicode LINE SEPARATOR and PARAGRAPH SEPARATOR
_UNICODE_NEWLINES_RE = re.compile(r'[\u2028\u2029]')

DEFAULT_PREVIEW_CHARS = 80


def sanitize_for_logging(value: Any) -> str:
    """
    Strip control characters and line breaks so a value cannot forge log entries.

    Examples:
        >>> sanitize_for_logging("Hello\\nWorld")
        'HelloWorld'
        >>> sanitize_for_logging("A\u2028B")
        'AB'
        >>> sanitize_for_logging(None)
        ''
    """
    if value is None:
        return ''
    if not isinstance(value, str):
        value = str(value)
    value = _CONTROL_CHARS_RE.sub('', value)
    value = _UNICODE_NEWLINES_RE.sub('', value)
    return value


def preview_for_logging(text: Any, limit: int = DEFAULT_PREVIEW_CHARS) -> str:
    """Sanitized, truncated preview of message text for DEBUG logs."""
    cleaned = sanitize_for_logging(text)
    if len(cleaned) <= limit:
        return cleaned
    return f"{cleaned[:limit]}... ({len(cleaned)} chars)"
