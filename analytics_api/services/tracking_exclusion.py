"""
Tracking exclusion — keeps automated and test traffic out of the counters.
"""

from typing import Mapping

# Search engines, social previews, SEO tools, monitors and HTTP libraries
BOT_PATTERNS = (
    "googlebot", "bingbot", "slurp", "duckduckbot", "baiduspider", "yandexbot",
    "sogou", "exabot", "facebot", "ia_archiver",
    "facebookexternalhit", "twitterbot", "linkedinbot", "whatsapp", "telegrambot",
    "discordbot", "slackbot",
    "ahrefsbot", "semrushbot", "mj12bot", "dotbot", "rogerbot", "screaming frog",
    "bot", "crawler", "spider", "crawling", "feedfetcher",
    "uptimerobot", "pingdom", "statuscake", "site24x7",
    "curl", "wget", "python-requests", "go-http-client", "java/", "httpunit",
    "libwww", "httplib", "axios", "node-fetch",
)

AUTOMATED_BROWSER_PATTERNS = (
    "playwright", "puppeteer", "headlesschrome", "cypress", "selenium",
)

EXCLUDE_HEADER = "x-exclude-from-stats"


def is_bot(user_agent: str) -> bool:
    ua = (user_agent or "").lower()
    return any(p in ua for p in BOT_PATTERNS)


def is_automated_browser(user_agent: str) -> bool:
    ua = (user_agent or "").lower()
    return any(p in ua for p in AUTOMATED_BROWSER_PATTERNS)


def should_exclude_request(headers: Mapping[str, str], exclude_bots: bool = True) -> bool:
    """True for automated browsers, opted-out test traffic and (optionally) crawlers."""
    user_agent = headers.get("user-agent") or ""

    if is_automated_browser(user_agent):
        return True

    if (headers.get(EXCLUDE_HEADER) or "").lower() == "true":
        return True

    return exclude_bots and is_bot(user_agent)
