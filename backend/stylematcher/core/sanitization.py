"""
Input sanitization utilities for user-provided data.
"""
import re
from typing import Optional

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')
_RESERVED_NAMES = re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$', re.IGNORECASE)
# Tabs and newlines are common in spreadsheet headers; other control characters are not
_UNSAFE_HEADER_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]')


def sanitize_filename(filename: Optional[str], max_length: int = 255) -> str:
    """
    Strip path components and control characters from an uploaded filename.

    Returns "unknown" when nothing usable is left.
    """
    if not filename:
        return "unknown"

    filename = filename.split('/')[-1].split('\\')[-1]
    filename = _CONTROL_CHARS.sub('', filename)
    filename = filename.strip('. ')[:max_length]

    return filename or "unknown"


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """Make a value safe to interpolate into a log line (no forged lines)."""
    if not value:
        return ""

    value = re.sub(r'[\r\n]', ' ', value)
    value = _CONTROL_CHARS.sub('', value)

    if len(value) > max_length:
        value = value[:max_length] + "..."

    return value


def sanitize_style_label(label: Optional[str], max_length: int = 64) -> Optional[str]:
    """
    Clean a chart style hint ("Bar Chart") coming from a client or detector.

    Collapses whitespace, drops control characters and truncates. Returns None
    for a blank hint so callers can treat it as "no preference".
    """
    if label is None:
        return None
    label = _CONTROL_CHARS.sub(' ', label)
    label = ' '.join(label.split())[:max_length].strip()
    return label or None


def validate_column_name(name: str) -> bool:
    """True when a column header is safe to echo back and embed in specs."""
    if not name or len(name) > 1000:
        return False

    if '..' in name or _UNSAFE_HEADER_CHARS.search(name) or _RESERVED_NAMES.match(name):
        return False

    return True
