from agentrelay.utils.masking import build_hint, mask_secret
from agentrelay.utils.text import choice_or_default, css_color_or_default, is_valid_slug, parse_flag, slugify


def test_slugify() -> None:
    assert slugify("Support Bot") == "support-bot"
    assert slugify("  Café & Bar!! ") == "caf-bar"
    assert slugify("--Already-ok--") == "already-ok"
    assert slugify("") == ""


def test_is_valid_slug() -> None:
    assert is_valid_slug("support-2")
    assert not is_valid_slug("")
    assert not is_valid_slug(None)
    assert not is_valid_slug("Support")
    assert not is_valid_slug("with space")
    assert not is_valid_slug("under_score")


def test_css_color_or_default() -> None:
    for ok in ("#fff", "#ff5500", "#ff550080", "rgb(255, 85, 0)", "hsla(20, 100%, 50%, 0.5)", "tomato"):
        assert css_color_or_default(ok, "#007bff") == ok
    for bad in ("", None, "#ff55a", "red;}", "url(javascript:alert(1))", "#ff5500</style>"):
        assert css_color_or_default(bad, "#007bff") == "#007bff"


def test_parse_flag() -> None:
    assert parse_flag(None) is True
    assert parse_flag("") is True
    assert parse_flag("true") is True
    for off in ("false", "0", "no", "OFF"):
        assert parse_flag(off) is False
    assert parse_flag(None, default=False) is False


def test_choice_or_default() -> None:
    themes = ("light", "dark", "auto")
    assert choice_or_default("Dark", themes, "light") == "dark"
    assert choice_or_default("neon", themes, "light") == "light"
    assert choice_or_default(None, themes, "light") == "light"


def test_key_hint_never_shows_the_middle() -> None:
    assert build_hint("sk-proj-0123456789abcd") == "sk-pro********abcd"
    assert mask_secret("short") == "*****"
    assert build_hint("") == ""
