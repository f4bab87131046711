"""
Entry content helpers.

Body extraction from archived feed messages, per-feed rewrite rules,
HTML sanitization, plain-text rendering and reading time estimation.
"""

from __future__ import annotations

import logging
import math
import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse

import bleach
from bs4 import BeautifulSoup
from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

from .models import DEFAULT_CJK_READING_SPEED, DEFAULT_READING_SPEED, User

logger = logging.getLogger(__name__)

# langdetect is probabilistic; a fixed seed keeps reading times stable across runs
DetectorFactory.seed = 0

BODY_RX = re.compile(r"<body(?:[^>]*)?>(.*)</body>", re.DOTALL)
FEED_ENTRY_CONTENT_RX = re.compile(
    r'div\s+class="feedEntryContent">\s*(.*)</div>\s*<div\s+class="feedEntryLinks">',
    re.DOTALL,
)
FEED_ENTRY_ALTERNATE_LINKS_RX = re.compile(
    r'<ul\s+class="feedEntryAlternateLinks">\s*<li>\s*<a\s+href="([^"]+)"', re.DOTALL
)

TITLE_MAX_LENGTH = 100

# Languages read by character count rather than word count
CJK_LANGUAGES = ("zh", "ja", "ko")

# Tags dropped together with everything inside them
BLOCKED_TAGS = ["script", "style", "noscript", "iframe", "object", "embed", "form"]

ALLOWED_HTML_TAGS = [
    "a", "abbr", "acronym", "audio", "b", "blockquote", "br", "caption",
    "cite", "code", "dd", "del", "dfn", "dl", "dt", "em", "figcaption",
    "figure", "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "ins",
    "kbd", "li", "mark", "ol", "p", "picture", "pre", "q", "s", "samp",
    "small", "source", "strong", "sub", "sup", "table", "tbody", "td",
    "tfoot", "th", "thead", "time", "tr", "u", "ul", "video",
]
ALLOWED_HTML_ATTRIBUTES = {
    "a": ["href", "title", "rel", "target"],
    "abbr": ["title"],
    "acronym": ["title"],
    "audio": ["src", "controls"],
    "blockquote": ["cite"],
    "img": ["src", "alt", "title", "width", "height", "srcset"],
    "q": ["cite"],
    "source": ["src", "type", "srcset"],
    "td": ["colspan", "rowspan"],
    "th": ["colspan", "rowspan"],
    "time": ["datetime"],
    "video": ["src", "controls", "poster", "width", "height"],
}
ALLOWED_PROTOCOLS = ["http", "https", "mailto"]

# Rewrite rules applied when a feed defines none, keyed by entry domain
PREDEFINED_REWRITE_RULES = {
    "xkcd.com": "add_image_title",
    "monkeyuser.com": "add_image_title",
    "thedoghousediaries.com": "add_image_title",
    "explosm.net": "add_image_title",
    "smbc-comics.com": "add_image_title",
}

RULE_RX = re.compile(r"([a-z0-9_]+)(?:\(([^)]*)\))?")
RULE_ARG_RX = re.compile(r'"([^"]*)"')


def extract_body(html: str) -> str:
    """Return the article region of a feed message, or the HTML unchanged."""
    for rx in (FEED_ENTRY_CONTENT_RX, BODY_RX):
        match = rx.search(html)
        if match:
            return match.group(1).strip()
    return html


def extract_alternate_link(html: str) -> str:
    """First link of the feedEntryAlternateLinks list, or empty string."""
    if not html:
        return ""
    match = FEED_ENTRY_ALTERNATE_LINKS_RX.search(html)
    if match:
        return match.group(1).strip()
    return ""


def strip_tags(html: str) -> str:
    """Visible text of an HTML fragment with whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return " ".join(soup.get_text(separator=" ").split())


def truncate_html(html: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Plain text of html cut to at most max_length characters."""
    return strip_tags(html)[:max_length].strip()


# -----------------------------------------------------------------------------
# Rewrite rules
# -----------------------------------------------------------------------------


def parse_rewrite_rules(rules: str) -> List[Tuple[str, List[str]]]:
    """
    Split a rule string into (name, args) pairs, keeping order.

    Example:
        >>> parse_rewrite_rules('add_image_title,remove(".ads")')
        [('add_image_title', []), ('remove', ['.ads'])]
    """
    if not rules:
        return []
    parsed = []
    for match in RULE_RX.finditer(rules):
        args = RULE_ARG_RX.findall(match.group(2) or "")
        parsed.append((match.group(1), args))
    return parsed


def get_predefined_rules(entry_url: str) -> str:
    domain = urlparse(entry_url).netloc.lower()
    if not domain:
        return ""
    for rule_domain, rules in PREDEFINED_REWRITE_RULES.items():
        if domain == rule_domain or domain.endswith("." + rule_domain):
            return rules
    return ""


def _add_image_title(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    changed = False
    for img in soup.find_all("img"):
        title = img.get("title")
        if not title or not img.get("src"):
            continue
        figure = soup.new_tag("figure")
        new_img = soup.new_tag("img", src=img["src"], alt=img.get("alt", ""))
        caption = soup.new_tag("figcaption")
        paragraph = soup.new_tag("p")
        paragraph.string = title
        caption.append(paragraph)
        figure.append(new_img)
        figure.append(caption)
        img.replace_with(figure)
        changed = True
    return str(soup) if changed else html


def _remove_selector(html: str, selector: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    matches = soup.select(selector)
    if not matches:
        return html
    for tag in matches:
        tag.decompose()
    return str(soup)


def rewrite(entry_url: str, html: str, rules: str) -> str:
    """
    Apply a feed's rewrite rules to entry content.

    Supported rules: add_image_title, nl2br, remove("css selector"),
    replace("regex"|"replacement"). Unknown rules are logged and skipped.
    Without feed rules, predefined rules for the entry domain apply.
    """
    rules = rules or get_predefined_rules(entry_url)

    for name, args in parse_rewrite_rules(rules):
        if name == "add_image_title":
            html = _add_image_title(html)
        elif name == "nl2br":
            html = html.replace("\n", "<br>")
        elif name == "remove" and args:
            html = _remove_selector(html, args[0])
        elif name == "replace" and len(args) == 2:
            try:
                html = re.sub(args[0], args[1], html)
            except re.error as e:
                logger.warning(f"Invalid replace rule {args[0]!r}: {e}")
        else:
            logger.debug(f"Skipping unsupported rewrite rule: {name}")

    return html


# -----------------------------------------------------------------------------
# Sanitizer
# -----------------------------------------------------------------------------


def sanitize(entry_url: str, html_content: str) -> str:
    """
    Reduce entry HTML to a safe subset.

    Dangerous elements are removed with their content, relative links and
    image sources are resolved against the entry URL, external links open
    in a new tab, and bleach strips everything outside the allow list.

    Args:
        entry_url: Canonical entry URL used as base for relative links
        html_content: Rewritten entry HTML

    Returns:
        Sanitized HTML
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")
    for tag in soup(BLOCKED_TAGS):
        tag.decompose()

    for tag in soup.find_all(["a", "img", "audio", "video", "source"]):
        for attr in ("href", "src", "poster"):
            value = tag.get(attr)
            if value and entry_url:
                tag[attr] = urljoin(entry_url, value.strip())
        if tag.name == "a" and tag.get("href"):
            tag["rel"] = "noopener noreferrer"
            tag["target"] = "_blank"

    return bleach.clean(
        str(soup),
        tags=ALLOWED_HTML_TAGS,
        attributes=ALLOWED_HTML_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
    )


# -----------------------------------------------------------------------------
# Reading time
# -----------------------------------------------------------------------------


def detect_language(text: str) -> Optional[str]:
    """ISO language code of text (e.g. 'en', 'zh-cn'), or None if undetectable."""
    try:
        return detect(text)
    except LangDetectException:
        return None


def is_cjk_language(language: Optional[str]) -> bool:
    if not language:
        return False
    return language.split("-")[0] in CJK_LANGUAGES


def calculate_reading_time(content: str, user: User) -> int:
    """Estimated minutes to read content, rounded up."""
    text = strip_tags(content)
    if not text:
        return 0

    if is_cjk_language(detect_language(text)):
        speed = user.cjk_reading_speed
        if speed <= 0:
            speed = DEFAULT_CJK_READING_SPEED
        count = len(text)
    else:
        speed = user.default_reading_speed
        if speed <= 0:
            speed = DEFAULT_READING_SPEED
        count = len(text.split())

    return max(0, math.ceil(count / speed))
