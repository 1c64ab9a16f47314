from __future__ import annotations

from fastapi import Request

from asset_register_app.core.defaults import DEFAULT_USER_HEADERS, DEFAULT_USER_ID
from asset_register_app.core.env import ASSETREG_USER_HEADERS, get_env


def sanitize_header_identity_value(value: str) -> str:
    text = str(value or "").strip()
    if not text:
        return ""
    if any(ch in text for ch in ("\r", "\n", "\t", "\x00")):
        return ""
    if len(text) > 320:
        return ""
    return text


def _user_headers() -> list[str]:
    configured = get_env(ASSETREG_USER_HEADERS, ",".join(DEFAULT_USER_HEADERS))
    names: list[str] = []
    for raw_name in configured.split(","):
        name = sanitize_header_identity_value(raw_name).lower()
        if name and name not in names:
            names.append(name)
    return names or list(DEFAULT_USER_HEADERS)


def resolve_request_user_id(request: Request) -> str:
    for name in _user_headers():
        value = sanitize_header_identity_value(str(request.headers.get(name, "")))
        if value:
            return value
    return DEFAULT_USER_ID
