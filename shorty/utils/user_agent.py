"""User-agent classification driven by ordered rule tables.

Every table is evaluated first-match-wins. Bot patterns run before
anything else and short-circuit device, browser and OS detection.
"""

import re
from enum import Enum
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

from pydantic import BaseModel


class DeviceType(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"
    TABLET = "tablet"
    BOT = "bot"
    UNKNOWN = "unknown"


class ParsedUserAgent(BaseModel):
    device_type: DeviceType = DeviceType.UNKNOWN
    browser: str = "Unknown"
    os: str = "Unknown"
    is_bot: bool = False
    bot_name: Optional[str] = None


BOT_PATTERNS = [
    "bot", "crawler", "spider", "scraper", "parser", "checker", "monitor",
    "validator", "test", "curl", "wget", "fetch", "googlebot", "bingbot",
    "yahoo", "baiduspider", "facebookexternalhit", "twitterbot",
    "linkedinbot", "whatsapp", "telegrambot", "slackbot",
]

BOT_NAMES = [
    ("googlebot", "Googlebot"),
    ("bingbot", "Bingbot"),
    ("baiduspider", "Baiduspider"),
    ("yahoo", "Yahoo! Slurp"),
    ("facebookexternalhit", "Facebook"),
    ("twitterbot", "Twitterbot"),
    ("linkedinbot", "LinkedInBot"),
    ("whatsapp", "WhatsApp"),
    ("telegrambot", "TelegramBot"),
    ("slackbot", "Slackbot"),
    ("curl", "curl"),
    ("wget", "Wget"),
]

TABLET_PATTERNS = [
    "ipad", "tablet", "kindle", "silk", "playbook", "nexus 7", "nexus 9",
    "nexus 10", "galaxy tab", "sm-t",
]

MOBILE_PATTERNS = [
    "mobile", "iphone", "ipod", "android", "blackberry", "windows phone",
    "opera mini", "iemobile", "webos", "nokia", "samsung", "htc", "lg-",
    "motorola",
]

# (predicate on lower-cased UA, browser name)
BROWSER_RULES: List[Tuple[Callable[[str], bool], str]] = [
    (lambda ua: "edg/" in ua or "edge/" in ua, "Edge"),
    (lambda ua: "opr/" in ua or "opera" in ua, "Opera"),
    (lambda ua: "samsungbrowser" in ua, "Samsung Browser"),
    (lambda ua: "ucbrowser" in ua, "UC Browser"),
    (lambda ua: "chrome" in ua or "crios" in ua, "Chrome"),
    (lambda ua: "firefox" in ua or "fxios" in ua, "Firefox"),
    (lambda ua: "safari" in ua, "Safari"),
    (lambda ua: "msie" in ua or "trident" in ua, "Internet Explorer"),
]

WINDOWS_VERSIONS = [
    ("windows nt 10.0", "Windows 10"),
    ("windows nt 6.3", "Windows 8.1"),
    ("windows nt 6.2", "Windows 8"),
    ("windows nt 6.1", "Windows 7"),
    ("windows nt 6.0", "Windows Vista"),
    ("windows nt 5.1", "Windows XP"),
]


def _versioned(pattern: Pattern[str], name: str) -> Callable[[str], Optional[str]]:
    def match(ua: str) -> Optional[str]:
        found = pattern.search(ua)
        if not found:
            return None
        version = found.group(1).replace("_", ".") if found.groups() and found.group(1) else ""
        return f"{name} {version}".strip()
    return match


def _windows(ua: str) -> Optional[str]:
    if "windows" not in ua:
        return None
    for token, name in WINDOWS_VERSIONS:
        if token in ua:
            return name
    return "Windows"


def _contains(token: str, name: str) -> Callable[[str], Optional[str]]:
    return lambda ua: name if token in ua else None


def _word(token: str, name: str) -> Callable[[str], Optional[str]]:
    pattern = re.compile(rf"\b{re.escape(token)}\b")
    return lambda ua: name if pattern.search(ua) else None


# Ordered OS matchers; iOS and Android precede macOS and Linux since
# their UA strings also mention "mac os x" and "linux".
OS_RULES: List[Callable[[str], Optional[str]]] = [
    _windows,
    _versioned(re.compile(r"(?:iphone|ipad|ipod).*?os (\d+(?:_\d+)*)"), "iOS"),
    _versioned(re.compile(r"android (\d+(?:\.\d+)*)"), "Android"),
    _contains("android", "Android"),
    _word("cros", "Chrome OS"),
    _versioned(re.compile(r"mac os x (\d+(?:[_.]\d+)*)"), "macOS"),
    _contains("macintosh", "macOS"),
    _contains("ubuntu", "Ubuntu"),
    _contains("linux", "Linux"),
]


def _first_match(ua: str, patterns: Sequence[str]) -> bool:
    return any(pattern in ua for pattern in patterns)


def detect_bot(ua: str) -> Tuple[bool, Optional[str]]:
    """Return whether ua is a bot and, if known, which one."""
    lowered = ua.lower()
    if not _first_match(lowered, BOT_PATTERNS):
        return False, None
    for token, name in BOT_NAMES:
        if token in lowered:
            return True, name
    return True, "Unknown Bot"


def detect_device(ua: str) -> DeviceType:
    lowered = ua.lower()
    if _first_match(lowered, TABLET_PATTERNS):
        return DeviceType.TABLET
    if _first_match(lowered, MOBILE_PATTERNS):
        return DeviceType.MOBILE
    return DeviceType.DESKTOP


def detect_browser(ua: str) -> str:
    lowered = ua.lower()
    for predicate, name in BROWSER_RULES:
        if predicate(lowered):
            return name
    return "Unknown"


def detect_os(ua: str) -> str:
    lowered = ua.lower()
    for rule in OS_RULES:
        name = rule(lowered)
        if name:
            return name
    return "Unknown"


def parse_user_agent(user_agent: Optional[str]) -> ParsedUserAgent:
    """Classify a raw User-Agent header."""
    if not user_agent or not user_agent.strip():
        return ParsedUserAgent()

    is_bot, bot_name = detect_bot(user_agent)
    if is_bot:
        return ParsedUserAgent(
            device_type=DeviceType.BOT,
            browser="Bot",
            os="Unknown",
            is_bot=True,
            bot_name=bot_name,
        )

    return ParsedUserAgent(
        device_type=detect_device(user_agent),
        browser=detect_browser(user_agent),
        os=detect_os(user_agent),
    )
