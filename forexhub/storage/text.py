# forexhub/storage/text.py
"""
Text helpers shared by both storage adapters.

Search matching, slug rules, email checks and password hashing live here
so the durable and volatile adapters cannot drift apart: each adapter calls
the same function instead of re-implementing the rule against its own
backend.
"""

import base64
import hashlib
import re
import secrets
import unicodedata
from datetime import UTC, datetime

# Separates fields inside a search blob. Queries are stripped of control
# characters, so a match can never span two fields.
SEARCH_FIELD_SEPARATOR = "\x1f"

_WHITESPACE_RE = re.compile(r"\s+")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PBKDF2_ITERATIONS = 260_000


def utcnow() -> datetime:
    """Naive UTC timestamp. SQLite drops tzinfo, so both adapters store naive values."""
    return datetime.now(UTC).replace(tzinfo=None)


def naive_utc(value: datetime) -> datetime:
    """Caller-supplied timestamp in the stored form: aware values are converted to UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def strip_diacritics(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_search_text(value: str | None) -> str:
    """
    Canonical form used on both sides of a search comparison.

    NFKD decomposition, combining marks removed, casefolded, control
    characters dropped and whitespace collapsed.

    >>> normalize_search_text("  Crème   BRÛLÉE ")
    'creme brulee'
    """
    if not value:
        return ""
    text = strip_diacritics(value).casefold()
    text = _CONTROL_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def build_search_text(*parts: str | None) -> str:
    """Join the designated fields of an entity into one normalized blob."""
    return SEARCH_FIELD_SEPARATOR.join(normalize_search_text(p) for p in parts)


def matches_search(search_text: str, query: str) -> bool:
    normalized = normalize_search_text(query)
    return bool(normalized) and normalized in search_text


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so a query is matched literally."""
    return value.replace(escape, escape * 2).replace("%", f"{escape}%").replace("_", f"{escape}_")


def slugify(value: str) -> str:
    """
    URL-safe slug from free text.

    >>> slugify("Trend Master EA v2.5")
    'trend-master-ea-v2-5'
    """
    text = strip_diacritics(value).lower()
    return _SLUG_STRIP_RE.sub("-", text).strip("-")


def is_valid_slug(value: str) -> bool:
    return bool(_SLUG_RE.match(value))


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Slugify tags, drop empties and duplicates, keep first-seen order."""
    seen: list[str] = []
    for tag in tags or []:
        slug = slugify(tag)
        if slug and slug not in seen:
            seen.append(slug)
    return seen


def normalize_email(value: str) -> str:
    return value.strip().lower()


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value))


def hash_password(password: str) -> str:
    """PBKDF2-SHA256 hash in the form ``pbkdf2_sha256$iterations$salt$digest``."""
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return "$".join(
        [
            "pbkdf2_sha256",
            str(PBKDF2_ITERATIONS),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(digest).decode("ascii"),
        ]
    )


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt_b64, digest_b64 = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    salt = base64.b64decode(salt_b64)
    expected = base64.b64decode(digest_b64)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iterations))
    return secrets.compare_digest(digest, expected)
