"""Input sanitization for contact form fields.

Two policies exist and must not be mixed up:

* ``sanitize`` flattens the value onto a single line.  Use it for anything
  that can end up in a mail header (name, email, subject).
* ``sanitize_multiline`` keeps internal line breaks.  Use it for the
  message body, which is only ever rendered as body text.

Both always return a string and never raise.
"""

import html
import re
from typing import Any

DEFAULT_MAX_LENGTH = 1000

# Everything str.splitlines() treats as a line boundary
_NEWLINES_RE = re.compile(r"[\r\n\x0b\x0c\x1c-\x1e\x85\u2028\u2029]+")
_UNICODE_BREAKS_RE = re.compile(r"[\x0b\x0c\x1c-\x1e\x85\u2028\u2029]")
# C0 and C1 controls and DEL, except tab and newline
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    try:
        return str(value)
    except Exception:
        return ""


def sanitize(value: Any, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Trim, collapse line-break runs to a single space, drop controls, truncate."""
    text = _NEWLINES_RE.sub(" ", _to_text(value).strip())
    text = _CONTROL_RE.sub("", text)
    return text.strip()[:max_length]


def sanitize_multiline(value: Any, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Like ``sanitize`` but normalizes line endings to ``\\n`` instead of flattening."""
    text = _to_text(value).strip().replace("\r\n", "\n").replace("\r", "\n")
    text = _UNICODE_BREAKS_RE.sub("\n", text)
    text = _CONTROL_RE.sub("", text)
    return text.strip()[:max_length]


def escape_html(text: str) -> str:
    """Escape ``& < > " '`` for interpolation into HTML."""
    return html.escape(text, quote=True)
