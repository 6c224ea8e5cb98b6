"""Cookie normalization and structural validation.

Turns a pasted cookie blob (newlines, doubled separators, stray whitespace)
into the canonical ``key=value; key=value`` form and extracts named tokens.
All helpers are pure and never raise; malformed input degrades to an
empty or partial result.
"""

import re

REQUIRED_TOKENS = ("__Secure-1PSID", "__Secure-1PSIDTS")

_NEWLINE_RUN = re.compile(r"\s*\n\s*")
_SPACE_RUN = re.compile(r"\s{2,}")
_SEMICOLON_RUN = re.compile(r";{2,}")
_EDGE_SEMICOLONS = re.compile(r"^;+|;+$")


def sanitize_cookie_string(raw: str | None) -> str:
    """Collapse a raw cookie paste into canonical ``"; "``-joined form.

    Args:
        raw: Text as pasted by the user. ``None`` is treated as empty.

    Returns:
        Canonical cookie string with no empty segments and no leading or
        trailing separators.
    """
    if not raw:
        return ""

    cleaned = _NEWLINE_RUN.sub("; ", raw)
    cleaned = _SPACE_RUN.sub(" ", cleaned)
    cleaned = _SEMICOLON_RUN.sub(";", cleaned)
    cleaned = _EDGE_SEMICOLONS.sub("", cleaned.strip())

    segments = (segment.strip() for segment in cleaned.split(";"))
    return "; ".join(segment for segment in segments if segment)


def parse_cookie_string(cookie_string: str | None) -> dict[str, str]:
    """Parse a cookie string into a name -> value mapping.

    Values may themselves contain ``=``; only the first one separates the
    name. Segments without a name are dropped. Later duplicates win.
    """
    parsed: dict[str, str] = {}
    for segment in sanitize_cookie_string(cookie_string).split(";"):
        key, _, value = segment.partition("=")
        key = key.strip()
        if not key:
            continue
        parsed[key] = value.strip()
    return parsed


def get_cookie_value(cookie_string: str | None, name: str) -> str | None:
    """Look up one token by exact name, or ``None`` when absent."""
    return parse_cookie_string(cookie_string).get(name)


def has_required_tokens(cookie_string: str | None) -> bool:
    """Check that every required session token appears as ``name=``.

    This is a structural check only. Whether the upstream service accepts
    the credential is established by a round-trip (see the gateway).
    """
    cleaned = sanitize_cookie_string(cookie_string)
    return all(f"{token}=" in cleaned for token in REQUIRED_TOKENS)
