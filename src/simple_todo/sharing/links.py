# src/simple_todo/sharing/links.py

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

IMPORT_PREFIX = "import="


def build_share_url(base_url: str, token: str) -> str:
    """Put the token into the URL fragment: <base>#import=<token>."""
    parts = urlsplit(base_url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, f"{IMPORT_PREFIX}{token}"))


def extract_import_token(link: str) -> str | None:
    """
    Pull the token out of a full URL, a bare fragment ("#import=..."),
    or "import=...". Anything else is taken as a raw token.
    """
    text = (link or "").strip()
    if not text:
        return None

    if "#" in text:
        fragment = text.split("#", 1)[1]
    else:
        fragment = text

    if fragment.startswith(IMPORT_PREFIX):
        token = fragment[len(IMPORT_PREFIX):]
        return token or None

    if "#" in text or "://" in text:
        # a URL without an import fragment
        return None
    return fragment


def clear_import_fragment(url: str) -> str:
    """Drop the fragment, keep path and query untouched."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))
