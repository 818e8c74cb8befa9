from utils.html_sanitize import sanitize_html, strip_html


def test_sanitize_html_strips_leading_junk():
    raw = "\ufeff\u26a0\u26a0\ufe0f  \n<p>Hello</p>"
    assert sanitize_html(raw).startswith("<p>Hello")


def test_sanitize_html_removes_code_fence():
    raw = "```html\n<div><p>Body</p></div>\n```"
    assert sanitize_html(raw) == "<div><p>Body</p></div>"


def test_sanitize_html_balances_paragraphs():
    raw = "<p>Line 1<p>Line 2</p>"
    sanitized = sanitize_html(raw)
    assert sanitized.endswith("</p>")
    assert sanitized.count("<p") == sanitized.count("</p>")


def test_sanitize_html_ignores_other_p_tags():
    raw = "<pre>code</pre><p>Text</p>"
    assert sanitize_html(raw) == raw


def test_sanitize_html_handles_non_string_inputs():
    assert sanitize_html(None) == ""
    assert sanitize_html(123).endswith("123")


def test_strip_html_leaves_text():
    assert strip_html("<p>Hello <b>world</b></p>").split() == ["Hello", "world"]
    assert strip_html(None) == ""
