from __future__ import annotations


def mask_secret(value: str, *, show_start: int = 6, show_end: int = 4) -> str:
    v = value.strip()
    if len(v) <= show_start + show_end:
        return "*" * len(v)
    return f"{v[:show_start]}{'*' * 8}{v[-show_end:]}"


def build_hint(value: str) -> str:
    v = (value or "").strip()
    if not v:
        return ""
    return mask_secret(v)
