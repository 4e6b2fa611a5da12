"""Device, browser and OS detection from a User-Agent header (ordered substring rules, first match wins)."""

from __future__ import annotations

import re
from dataclasses import dataclass

UNKNOWN = "Unknown"

_DEVICE_TYPE_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"mobile", re.I), "mobile"),
    (re.compile(r"tablet|ipad", re.I), "tablet"),
    (re.compile(r"windows|mac|linux", re.I), "desktop"),
]

_OS_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"windows", re.I), "Windows"),
    (re.compile(r"mac", re.I), "macOS"),
    (re.compile(r"linux", re.I), "Linux"),
    (re.compile(r"android", re.I), "Android"),
    (re.compile(r"ios|iphone|ipad", re.I), "iOS"),
]

_EDGE = re.compile(r"edge|edg", re.I)
_CHROME = re.compile(r"chrome", re.I)
_SAFARI = re.compile(r"safari", re.I)
_FIREFOX = re.compile(r"firefox", re.I)


@dataclass(frozen=True)
class DeviceInfo:
    device_name: str
    device_type: str
    browser: str
    os: str


def _first_match(rules: list[tuple[re.Pattern[str], str]], user_agent: str, default: str) -> str:
    for pattern, value in rules:
        if pattern.search(user_agent):
            return value
    return default


def _detect_browser(user_agent: str) -> str:
    if _CHROME.search(user_agent) and not _EDGE.search(user_agent):
        return "Chrome"
    if _SAFARI.search(user_agent) and not _CHROME.search(user_agent):
        return "Safari"
    if _FIREFOX.search(user_agent):
        return "Firefox"
    if _EDGE.search(user_agent):
        return "Edge"
    return UNKNOWN


def detect_device(user_agent: str | None) -> DeviceInfo:
    ua = user_agent or ""
    device_type = _first_match(_DEVICE_TYPE_RULES, ua, "unknown")
    browser = _detect_browser(ua)
    os_name = _first_match(_OS_RULES, ua, UNKNOWN)
    return DeviceInfo(
        device_name=f"{browser} on {os_name}",
        device_type=device_type,
        browser=browser,
        os=os_name,
    )
