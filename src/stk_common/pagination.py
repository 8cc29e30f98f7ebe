"""Opaque cursor helpers shared by list endpoints.

Cursors are Base64 JSON. Two shapes are used:
  {"seq": <int>}                       ledger entries (BIGSERIAL order)
  {"ts": "<created_at ISO>", "id": ...} bets and stakes (VARCHAR PK)
A malformed cursor is treated as "start from the top".
"""

import base64
import binascii
import json
from datetime import datetime
from typing import Any


def _encode(payload: dict[str, Any]) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def _decode(cursor: str | None) -> dict[str, Any] | None:
    if not cursor:
        return None
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def encode_seq_cursor(seq: int) -> str:
    return _encode({"seq": seq})


def decode_seq_cursor(cursor: str | None) -> int | None:
    data = _decode(cursor)
    if data is None or not isinstance(data.get("seq"), int):
        return None
    return data["seq"]


def encode_time_cursor(created_at: datetime, item_id: str) -> str:
    return _encode({"ts": created_at.isoformat(), "id": item_id})


def decode_time_cursor(cursor: str | None) -> tuple[datetime | None, str | None]:
    data = _decode(cursor)
    if data is None:
        return None, None
    try:
        return datetime.fromisoformat(data["ts"]), str(data["id"])
    except (KeyError, TypeError, ValueError):
        return None, None
