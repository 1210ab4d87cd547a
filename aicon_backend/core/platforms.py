"""URL validation and platform detection for submitted content links."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlparse

from aicon_backend.core.errors import InvalidUrl

Platform = Literal["youtube", "instagram", "tiktok", "twitter"]

PLATFORM_DOMAINS: dict[str, tuple[str, ...]] = {
    "youtube": ("youtube.com", "youtu.be"),
    "instagram": ("instagram.com",),
    "tiktok": ("tiktok.com",),
    "twitter": ("twitter.com", "x.com"),
}

PLATFORM_DISPLAY_NAMES: dict[str, str] = {
    "youtube": "YouTube",
    "instagram": "Instagram",
    "tiktok": "TikTok",
    "twitter": "X (Twitter)",
}

# video platforms go through transcription before analysis can start
VIDEO_PLATFORMS = frozenset({"youtube", "tiktok"})

_PLACEHOLDER_COLOURS: dict[str, str] = {
    "instagram": "E4405F",
    "tiktok": "000000",
    "youtube": "FF0000",
    "twitter": "1DA1F2",
}

_PROFILE_PATTERNS: dict[str, re.Pattern[str]] = {
    "youtube": re.compile(r"youtube\.com/@[\w-]+/?$"),
    "instagram": re.compile(r"instagram\.com/(?!p/|reel/)[\w.]+/?$"),
    "tiktok": re.compile(r"tiktok\.com/@[\w.-]+/?$"),
}


@dataclass(frozen=True, slots=True)
class ParsedUrl:
    url: str
    platform: str
    scope: Literal["single", "profile"] = "single"


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith(f".{domain}")


def detect_platform(url: str) -> str | None:
    """Return the platform tag for ``url`` or ``None`` when unsupported."""

    if not url or not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        return None
    host = parsed.hostname.lower()
    for platform, domains in PLATFORM_DOMAINS.items():
        if any(_host_matches(host, domain) for domain in domains):
            return platform
    return None


def content_scope(url: str, platform: str) -> Literal["single", "profile"]:
    pattern = _PROFILE_PATTERNS.get(platform)
    if pattern is not None and pattern.search(url.split("?", 1)[0]):
        return "profile"
    return "single"


def parse_content_url(url: str) -> ParsedUrl:
    """Validate a submitted URL, raising :class:`InvalidUrl` when unsupported."""

    cleaned = url.strip() if isinstance(url, str) else ""
    platform = detect_platform(cleaned)
    if platform is None:
        raise InvalidUrl("Please enter a valid YouTube, Instagram, TikTok, or X URL")
    return ParsedUrl(url=cleaned, platform=platform, scope=content_scope(cleaned, platform))


def placeholder_thumbnail(platform: str | None) -> str:
    label = platform or "content"
    colour = _PLACEHOLDER_COLOURS.get(label.lower(), "666666")
    return f"https://via.placeholder.com/300x200/{colour}/FFFFFF?text={label}"


def poll_ceiling(platform: str | None, *, video: int, default: int) -> int:
    return video if platform in VIDEO_PLATFORMS else default
