"""
utils/device_utils.py

Purpose: Client device helpers

- Best-effort browser / OS / device type parsing from a User-Agent
- Client IP extraction behind proxies
- Token masking for session listings
"""

from typing import Any, Dict, Optional

from fastapi import Request

from utils.constants import UNKNOWN_IP

_BROWSERS = (
    ("Edg/", "Edge"),
    ("OPR/", "Opera"),
    ("Chrome/", "Chrome"),
    ("Firefox/", "Firefox"),
    ("Safari/", "Safari"),
)

_OPERATING_SYSTEMS = (
    ("Windows", "Windows"),
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Mac OS X", "macOS"),
    ("Linux", "Linux"),
)


def parse_user_agent(user_agent: Optional[str]) -> Dict[str, Optional[str]]:
    """
    Derives browser, OS and device type from a User-Agent string.

    Returns None for fields that cannot be determined.
    """
    if not user_agent:
        return {"browser": None, "os": None, "type": None}

    browser = next((name for marker, name in _BROWSERS if marker in user_agent), None)
    os_name = next((name for marker, name in _OPERATING_SYSTEMS if marker in user_agent), None)

    if "Mobile" in user_agent or "iPhone" in user_agent or "Android" in user_agent:
        device_type = "mobile"
    elif "iPad" in user_agent or "Tablet" in user_agent:
        device_type = "tablet"
    else:
        device_type = "desktop"

    return {"browser": browser, "os": os_name, "type": device_type}


def get_client_ip(request: Request) -> str:
    """
    Returns the originating client IP behind proxies.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for header in ("x-real-ip", "cf-connecting-ip"):
        if request.headers.get(header):
            return request.headers[header]
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IP


def describe_device(session: Dict[str, Any], position: int) -> str:
    """
    Human-readable device label for a stored session.

    Prefers "<browser> on <os>", then the free-text device string, then a
    positional "Device N" (1-based).
    """
    device = session.get("device") or {}
    browser = device.get("browser")
    os_name = device.get("os")
    if browser and os_name:
        return f"{browser} on {os_name}"
    if session.get("device_info"):
        return session["device_info"]
    return f"Device {position + 1}"


def mask_token(token: Optional[str]) -> str:
    """
    Masks a session token, keeping a short prefix and suffix.
    """
    if not token:
        return ""
    if len(token) <= 12:
        return "*" * len(token)
    return f"{token[:6]}...{token[-4:]}"
