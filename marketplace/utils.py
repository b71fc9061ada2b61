import html
from typing import Optional
from urllib.parse import urlparse

import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string before it is stored.

    - Removes NUL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Trims whitespace

    Text outside tags comes back exactly as typed, entity text included.
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    # bleach leaves existing entities alone, so escape every "&" first; one
    # unescape pass then undoes exactly what bleach and this step added
    val = val.replace("&", "&amp;")
    val = bleach.clean(val, tags=set(), strip=True)
    return html.unescape(val).strip()


def is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
