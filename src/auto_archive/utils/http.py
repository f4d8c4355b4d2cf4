"""Shared URL helpers for the Airtable endpoints."""

from __future__ import annotations

from urllib.parse import quote, urlparse

_ALLOWED_SCHEMES = frozenset({"http", "https"})


def normalize_base_url(value: str, *, label: str = "base_url") -> str:
    """Normalize and validate an API or web base URL.

    Lowercases the scheme, strips trailing slashes and rejects query strings,
    fragments and embedded credentials.
    """
    candidate = value.strip()
    if not candidate:
        raise ValueError(f"{label} must not be empty")

    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        raise ValueError(f"{label} must use http or https")
    if not parsed.netloc:
        raise ValueError(f"{label} must include host")
    if parsed.query or parsed.fragment:
        raise ValueError(f"{label} must not include query or fragment")
    if parsed.username or parsed.password:
        raise ValueError(f"{label} must not include userinfo")

    normalized_path = parsed.path.rstrip("/")
    return f"{parsed.scheme.lower()}://{parsed.netloc}{normalized_path}"


def path_segment(value: str) -> str:
    """Quote a table name or id for use as a single URL path segment."""
    return quote(value, safe="")


def base_link(web_url: str, base_id: str) -> str:
    return f"{web_url.rstrip('/')}/{base_id}"
