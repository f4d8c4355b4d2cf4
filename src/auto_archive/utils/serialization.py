"""JSON serialization utilities."""

from __future__ import annotations

import base64
import datetime
import decimal
import json


def json_default(obj: object) -> object:
    """JSON serializer for field values not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    if isinstance(obj, decimal.Decimal):
        # Integral decimals stay integers; others go through float.
        if obj == obj.to_integral_value():
            return int(obj)
        return float(obj)
    if isinstance(obj, bytes):
        try:
            return obj.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(obj).decode("utf-8")
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


def dumps_payload(payload: object) -> bytes:
    """Encode a request body as UTF-8 JSON."""
    return json.dumps(payload, ensure_ascii=False, default=json_default).encode("utf-8")
