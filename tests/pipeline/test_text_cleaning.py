from secintel.pipeline.text_cleaning import (
    CONTENT_MAX_CHARS,
    TITLE_MAX_CHARS,
    collapse_whitespace,
    html_to_text,
    truncate_text,
)


def test_collapse_whitespace_trims_and_joins_runs():
    assert collapse_whitespace("  patch \n\t now  ") == "patch now"
    assert collapse_whitespace(None) == ""


def test_html_to_text_drops_scripts_and_decodes_entities():
    markup = "<div><p>Patch <b>now</b></p><script>track()</script><style>p{}</style></div>"
    assert html_to_text(markup) == "Patch now"


def test_html_to_text_handles_double_escaped_entities():
    assert html_to_text("<p>Fixes &amp;amp; workarounds</p>") == "Fixes & workarounds"


def test_html_to_text_plain_string_passthrough():
    assert html_to_text("AT&amp;T outage") == "AT&T outage"


def test_truncate_text_respects_limit():
    assert truncate_text("abcdef", 3) == "abc"
    assert truncate_text("abc", 10) == "abc"
    assert truncate_text("abc", 0) == ""


def test_truncate_text_strips_trailing_space_at_cut():
    assert truncate_text("abc def", 4) == "abc"


def test_truncate_text_keeps_combining_cluster_whole():
    # "e" + COMBINING ACUTE ACCENT straddles the cut at index 5
    value = "abcde\u0301fg"
    result = truncate_text(value, 5)
    assert result == "abcd"
    assert len(result) <= 5


def test_truncate_text_drops_dangling_high_surrogate():
    value = "ab\ud83d\ude00cd"
    assert truncate_text(value, 3) == "ab"


def test_truncate_text_keeps_astral_code_points():
    assert truncate_text("ab\U0001F600cd", 3) == "ab\U0001F600"


def test_article_limits():
    assert len(truncate_text("x" * (TITLE_MAX_CHARS + 100), TITLE_MAX_CHARS)) == 500
    assert len(truncate_text("y" * (CONTENT_MAX_CHARS + 5), CONTENT_MAX_CHARS)) == 20_000
