"""Credential masking for values that reach the log."""

from __future__ import annotations

from collections.abc import Mapping

_MAX_DEPTH = 20

# Matched as lowercase substrings of the key.
SENSITIVE_KEY_MARKERS: tuple[str, ...] = (
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "authorization",
)


def mask_secret(value: str | None, *, visible: int = 4, mask: str = "***") -> str:
    """Mask a secret, keeping only its last ``visible`` characters."""
    if not value:
        return ""
    if len(value) <= visible * 2:
        return mask
    return f"{mask}{value[-visible:]}"


def _is_sensitive(key: object) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in SENSITIVE_KEY_MARKERS)


def redact_sensitive_fields(value: object, *, mask: str = "***", _depth: int = 0) -> object:
    """Return a copy of ``value`` with credential-like entries masked.

    String secrets keep their last few characters so the configured token can
    be told apart in logs; any other sensitive value is replaced outright.
    """
    if _depth >= _MAX_DEPTH:
        return mask
    if isinstance(value, Mapping):
        redacted: dict[object, object] = {}
        for key, item in value.items():
            if not _is_sensitive(key):
                redacted[key] = redact_sensitive_fields(item, mask=mask, _depth=_depth + 1)
            elif isinstance(item, str):
                redacted[key] = mask_secret(item, mask=mask)
            else:
                redacted[key] = mask
        return redacted
    if isinstance(value, (list, tuple)):
        return [redact_sensitive_fields(item, mask=mask, _depth=_depth + 1) for item in value]
    return value
