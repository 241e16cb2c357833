from __future__ import annotations

import re
from typing import Optional

_SLUG_RE = re.compile(r"^[a-z0-9-]+$")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_FUNC_COLOR_RE = re.compile(r"^(?:rgb|rgba|hsl|hsla)\(\s*[0-9.%,\s/+-]+\)$", re.IGNORECASE)
_NAMED_COLOR_RE = re.compile(r"^[a-zA-Z]{3,30}$")

_FALSE_STRINGS = ("false", "0", "no", "off")


def slugify(value: str) -> str:
    return _NON_SLUG_RE.sub("-", (value or "").lower()).strip("-")


def is_valid_slug(slug: Optional[str]) -> bool:
    return bool(slug) and bool(_SLUG_RE.match(slug or ""))


def css_color_or_default(value: Optional[str], default: str) -> str:
    """Return ``value`` when it is a plain CSS color, else ``default``.

    Only hex colors, rgb()/hsl() functions and bare color names pass, so the
    result is safe to interpolate into a style sheet.
    """
    v = (value or "").strip()
    if not v:
        return default
    if _HEX_COLOR_RE.match(v) or _FUNC_COLOR_RE.match(v) or _NAMED_COLOR_RE.match(v):
        return v
    return default


def parse_flag(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if not v:
        return default
    return v not in _FALSE_STRINGS


def choice_or_default(value: Optional[str], choices: tuple[str, ...], default: str) -> str:
    v = (value or "").strip().lower()
    return v if v in choices else default
