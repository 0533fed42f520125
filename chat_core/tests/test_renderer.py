import pytest

from chat_core.domain.models import Message
from chat_core.rendering.renderer import (
    apply_formatting,
    escape_html,
    format_file_size,
    render_markup,
    render_message,
    sidebar_title,
)


def test_inline_rules():
    assert render_markup("**bold**") == '<strong class="bold-text">bold</strong>'
    assert render_markup("_it_") == '<em class="italic-text">it</em>'
    assert render_markup("~gone~") == '<del class="strike-text">gone</del>'
    assert render_markup("use `pip`") == 'use <code class="inline-code">pip</code>'


def test_empty_content():
    assert render_markup("") == ""


def test_raw_html_is_escaped():
    out = render_markup("<script>alert('x')</script>")
    assert "<script" not in out
    assert out == "&lt;script&gt;alert(&#x27;x&#x27;)&lt;/script&gt;"


def test_already_escaped_text_is_not_double_escaped():
    assert escape_html("&lt;b&gt; &amp; & 1") == "&lt;b&gt; &amp; &amp; 1"
    out = render_markup("&lt;img src=x onerror=alert(1)&gt;")
    assert "<img" not in out
    assert out == "&lt;img src=x onerror=alert(1)&gt;"


def test_code_block_is_escaped_and_not_formatted():
    out = render_markup("before\n```html\n<b>**hi**</b>\n```\nafter")
    assert '<span class="language-tag">html</span>' in out
    assert "<pre><code>&lt;b&gt;**hi**&lt;/b&gt;</code></pre>" in out
    assert "<strong" not in out
    assert 'class="copy-btn"' in out
    assert out.startswith("before<br>")
    assert out.endswith("<br>after")


def test_code_block_without_language():
    out = render_markup("```\nx = 1\n```")
    assert '<span class="language-tag">text</span>' in out
    assert "<pre><code>x = 1</code></pre>" in out


def test_inline_code_is_not_formatted():
    assert render_markup("`**x**`") == '<code class="inline-code">**x**</code>'


def test_placeholder_lookalikes_pass_through():
    out = render_markup("\x00C0\x00 and \x00B0\x00")
    assert "<code" not in out
    assert "code-block" not in out


def test_list_items_are_grouped():
    out = render_markup("Steps:\n- one\n- two\ndone")
    assert out == (
        "Steps:<br>"
        '<ul class="styled-list"><li class="list-item">one</li><li class="list-item">two</li></ul>'
        "<br>done"
    )


def test_separate_lists_are_not_merged():
    out = render_markup("- a\ntext\n- b")
    assert out.count('<ul class="styled-list">') == 2


def test_quote_line():
    assert render_markup("> quoted **text**") == (
        '<blockquote class="quote-block">quoted <strong class="bold-text">text</strong></blockquote>'
    )


def test_newlines_become_breaks():
    assert render_markup("a\nb\n\nc") == "a<br>b<br><br>c"


def test_render_message_text_and_image():
    user = render_message(Message(role="user", content="Generate image: a cat", type="image_generation"))
    assert "<img" not in user
    assert 'class="message user"' in user

    image = render_message(
        Message(role="assistant", content="https://img.test/a.png", type="image", caption='"><b>cat')
    )
    assert '<img src="https://img.test/a.png"' in image
    assert "&quot;&gt;&lt;b&gt;cat" in image
    assert "<b>cat" not in image

    edited = render_message(Message(role="assistant", content="https://img.test/b.png", type="image_edit"))
    assert "Edited Image" in edited


def test_apply_formatting():
    assert apply_formatting("hello world", 0, 5, "bold") == ("*hello* world", 7)
    assert apply_formatting("hello", 5, 5, "code") == ("hello``", 7)
    assert apply_formatting("note", 0, 4, "quote") == ("> note", 6)
    with pytest.raises(ValueError):
        apply_formatting("x", 0, 1, "underline")


def test_format_file_size():
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(500) == "500 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(1048576) == "1 MB"


def test_sidebar_title_truncates():
    assert sidebar_title("short") == "short"
    assert sidebar_title("a" * 30) == "a" * 20 + "..."


def test_rendering_escaped_text_again_is_stable():
    once = render_markup("a < b & c > d")
    assert once == "a &lt; b &amp; c &gt; d"
    assert render_markup(once) == once

    block = render_markup("```\n<x> & y\n```")
    assert "&lt;x&gt; &amp; y" in block
    assert "&amp;lt;" not in block
