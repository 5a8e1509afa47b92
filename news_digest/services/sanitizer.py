"""
Sanitizing scraped text, model HTML and error messages
"""

import re
from bs4 import BeautifulSoup

_RE_SCRIPT_BLOCK = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_RE_TAG = re.compile(r"<[^>]*>")
_RE_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_RE_WHITESPACE = re.compile(r"\s+")

_RE_URL = re.compile(r"\b(?:https?|ftp|smtp)://[^\s'\"<>]+", re.IGNORECASE)
_RE_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_RE_IPV4 = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}(?::\d+)?\b")
_RE_KEY_ASSIGNMENT = re.compile(
    r"\b(api[_-]?key|key|token|secret|password|pass|authorization)(\s*[=:]\s*)(?:Bearer\s+)?[^\s,;'\"]+",
    re.IGNORECASE,
)
_RE_SECRET_TOKEN = re.compile(r"\b(?:sk|pk|rk)-[A-Za-z0-9_-]{8,}|\b[A-Za-z0-9+/_]{32,}={0,2}")

UNSAFE_TAGS = ["script", "style", "iframe", "object", "embed", "form", "link", "meta"]


def sanitize_text(text: str, max_length: int = 2000) -> str:
    """
    Turn scraped markup into a single line of plain text

    Args:
        text: Raw text, possibly containing HTML
        max_length: Maximum length of the result

    Returns:
        Text without tags, angle brackets or control characters
    """
    if not text:
        return ""

    cleaned = _RE_SCRIPT_BLOCK.sub(" ", text)
    cleaned = _RE_TAG.sub(" ", cleaned)
    cleaned = cleaned.replace("<", " ").replace(">", " ")
    cleaned = _RE_CONTROL.sub("", cleaned)
    cleaned = _RE_WHITESPACE.sub(" ", cleaned).strip()
    return cleaned[:max_length].rstrip()


def clean_digest_html(html: str) -> str:
    """Drop active content from model-produced HTML, keep the formatting"""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(UNSAFE_TAGS):
        element.decompose()

    for element in soup.find_all(True):
        for attr in list(element.attrs):
            value = element.attrs[attr]
            if attr.lower().startswith("on"):
                del element.attrs[attr]
            elif attr.lower() in ("href", "src") and isinstance(value, str) \
                    and value.strip().lower().startswith("javascript:"):
                del element.attrs[attr]

    return _RE_CONTROL.sub("", str(soup)).strip()


def html_to_text(html: str) -> str:
    """Plain text version of an HTML document, one block per paragraph"""
    soup = BeautifulSoup(html or "", "html.parser")
    for element in soup(["script", "style", "head", "title"]):
        element.decompose()

    lines = [line.strip() for line in soup.get_text("\n").splitlines()]
    return "\n".join(line for line in lines if line)


def is_valid_email(address: str) -> bool:
    return bool(address) and _RE_EMAIL.fullmatch(address.strip()) is not None


def mask_email(address: str) -> str:
    """jo***@example.com"""
    if not address or "@" not in address:
        return "***"
    local, domain = address.rsplit("@", 1)
    return f"{local[:2]}***@{domain}"


def sanitize_error_message(message: str) -> str:
    """Redact URLs, email addresses, IP addresses and credentials"""
    if not message:
        return ""

    redacted = str(message)
    redacted = _RE_URL.sub("[URL]", redacted)
    redacted = _RE_EMAIL.sub("[EMAIL]", redacted)
    redacted = _RE_IPV4.sub("[IP]", redacted)
    redacted = _RE_KEY_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}[REDACTED]", redacted)
    redacted = _RE_SECRET_TOKEN.sub("[REDACTED]", redacted)
    return _RE_CONTROL.sub("", redacted)
