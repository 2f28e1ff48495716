"""Coarse device and browser detection from a User-Agent string."""

from typing import Optional, Tuple

_BOT_MARKERS = ("bot", "crawler", "spider", "slurp", "preview")

# Order matters: Edge and Opera also claim to be Chrome, Chrome claims to be Safari
_BROWSER_MARKERS = (
    ("edg/", "Edge"),
    ("edge/", "Edge"),
    ("opr/", "Opera"),
    ("opera", "Opera"),
    ("firefox/", "Firefox"),
    ("fxios/", "Firefox"),
    ("crios/", "Chrome"),
    ("chrome/", "Chrome"),
    ("safari/", "Safari"),
)


def detect_device_type(agent: Optional[str]) -> Optional[str]:
    if not agent:
        return None
    agent = agent.lower()
    if any(marker in agent for marker in _BOT_MARKERS):
        return "bot"
    if "ipad" in agent or "tablet" in agent or ("android" in agent and "mobile" not in agent):
        return "tablet"
    if "mobi" in agent or "iphone" in agent or "android" in agent:
        return "mobile"
    return "desktop"


def detect_browser(agent: Optional[str]) -> Optional[str]:
    if not agent:
        return None
    agent = agent.lower()
    for marker, name in _BROWSER_MARKERS:
        if marker in agent:
            return name
    return "Other"


def parse_user_agent(agent: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return (device_type, browser); both None when no agent was sent"""
    return detect_device_type(agent), detect_browser(agent)
