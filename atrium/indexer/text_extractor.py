"""
Plain-text extraction from rich-text bodies.

Message bodies and note contents are stored as Quill delta JSON
(``{"ops": [{"insert": "..."}]}``). Anything that does not parse is treated
as markup and has its tags stripped.
"""

import json
import re
from typing import Any, Optional

_TAG_PATTERN = re.compile(r"<[^>]*>")

ELLIPSIS = "..."


def _join_inserts(ops: list) -> str:
    return "".join(
        op["insert"]
        for op in ops
        if isinstance(op, dict) and isinstance(op.get("insert"), str)
    )


def extract_text(body: Any, max_len: Optional[int] = None) -> str:
    """
    Extract plain text from a rich-text body. Never raises.

    Args:
        body: Delta JSON string, markup string, or any other value
        max_len: Truncate to this many characters, appending "..."

    Returns:
        Trimmed plain text, possibly empty
    """
    if body is None:
        return ""
    if not isinstance(body, str):
        body = str(body)

    try:
        parsed = json.loads(body)
    except ValueError:
        text = _TAG_PATTERN.sub("", body).strip()
    else:
        if isinstance(parsed, dict) and isinstance(parsed.get("ops"), list):
            text = _join_inserts(parsed["ops"]).strip()
        elif isinstance(parsed, list):
            text = _join_inserts(parsed).strip()
        else:
            # Valid JSON but not a delta (e.g. "42" or a bare string literal)
            text = body.strip()

    if max_len is not None and max_len >= 0 and len(text) > max_len:
        return text[:max_len] + ELLIPSIS
    return text
