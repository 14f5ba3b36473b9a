from anytomd import convert_bytes
from anytomd.adapters.html import html_to_markdown


def test_heading_and_inline_formatting() -> None:
    markdown, title = html_to_markdown("<h1>Title</h1><p>Hello <b>world</b> and <em>you</em></p>")
    assert markdown == "# Title\n\nHello **world** and *you*\n"
    assert title == "Title"


def test_title_element_wins_over_heading() -> None:
    html = "<html><head><title> Page  name </title></head><body><h2>Section</h2></body></html>"
    markdown, title = html_to_markdown(html)
    assert markdown == "## Section\n"
    assert title == "Page name"


def test_unordered_list() -> None:
    markdown, _ = html_to_markdown("<ul><li>a</li><li>b</li></ul>")
    assert markdown == "- a\n- b\n"


def test_nested_ordered_list() -> None:
    markdown, _ = html_to_markdown("<ol><li>x<ul><li>y</li></ul></li><li>z</li></ol>")
    assert markdown == "1. x\n  - y\n2. z\n"


def test_table_with_header_section() -> None:
    html = (
        "<table><thead><tr><th>A</th><th>B</th></tr></thead>"
        "<tbody><tr><td>1</td><td>x|y</td></tr></tbody></table>"
    )
    markdown, _ = html_to_markdown(html)
    assert markdown == "| A | B |\n|---|---|\n| 1 | x\\|y |\n"


def test_table_without_header_uses_first_row() -> None:
    markdown, _ = html_to_markdown("<table><tr><td>h</td></tr><tr><td>v</td></tr></table>")
    assert markdown == "| h |\n|---|\n| v |\n"


def test_preformatted_block_is_fenced() -> None:
    markdown, _ = html_to_markdown("<pre><code>a = 1\n</code></pre>")
    assert markdown == "```\na = 1\n```\n"


def test_links_images_and_inline_code() -> None:
    markdown, _ = html_to_markdown(
        '<p><a href="https://example.com">site</a> <img src="x.png" alt="pic"> <code>f()</code></p>'
    )
    assert markdown == "[site](https://example.com) ![pic](x.png) `f()`\n"


def test_inline_code_delimiter_outgrows_backtick_runs() -> None:
    markdown, _ = html_to_markdown("<p><code>a``b</code></p>")
    assert markdown == "```a``b```\n"


def test_scripts_styles_and_comments_are_dropped() -> None:
    markdown, _ = html_to_markdown("<style>p{}</style><script>alert(1)</script><!-- note --><p>kept</p>")
    assert markdown == "kept\n"


def test_blockquote_prefix() -> None:
    markdown, _ = html_to_markdown("<blockquote>quoted</blockquote>")
    assert markdown == "> quoted\n"


def test_html_adapter_decodes_and_sets_title() -> None:
    result = convert_bytes("<h1>日本語</h1>".encode("utf-8"), "html")
    assert result.markdown == "# 日本語\n"
    assert result.title == "日本語"
    assert result.warnings == []


def test_empty_document() -> None:
    assert convert_bytes(b"", "htm").markdown == ""
