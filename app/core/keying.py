from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Any

import orjson


def _orjson_dumps(obj: Any) -> bytes:
    return orjson.dumps(
        obj,
        option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
    )


def sha256_b32(data: bytes) -> str:
    h = hashlib.sha256(data).digest()
    # URL-safe base64 with no padding for brevity
    return base64.urlsafe_b64encode(h).decode("ascii").rstrip("=")


def place_list_key(source_url: str, user: str = "") -> str:
    payload = {"source_url": source_url.rstrip("/"), "user": user}
    return sha256_b32(_orjson_dumps(payload))


def new_session_id() -> str:
    return secrets.token_urlsafe(12)
