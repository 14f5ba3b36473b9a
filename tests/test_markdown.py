from anytomd.markdown import (
    build_table,
    escape_cell,
    fenced_block,
    format_heading,
    format_list_item,
    inline_code,
    wrap_emphasis,
)


def test_escape_cell_pipes_backslashes_and_newlines() -> None:
    assert escape_cell("a|b") == "a\\|b"
    assert escape_cell("c:\\dir") == "c:\\\\dir"
    assert escape_cell("one\ntwo\r\nthree") == "one<br>two<br>three"


def test_build_table_pads_and_truncates_rows() -> None:
    table = build_table(["A", "B"], [["1"], ["2", "3", "4"]])
    assert table == "| A | B |\n|---|---|\n| 1 |  |\n| 2 | 3 |\n"


def test_build_table_without_headers_is_empty() -> None:
    assert build_table([], [["x"]]) == ""


def test_format_heading_clamps_level() -> None:
    assert format_heading(0, "t") == "# t\n"
    assert format_heading(9, "t") == "###### t\n"


def test_wrap_emphasis_keeps_surrounding_whitespace() -> None:
    assert wrap_emphasis(" bold ", True, False) == " **bold** "
    assert wrap_emphasis("x", True, True) == "***x***"
    assert wrap_emphasis("x", False, True) == "*x*"
    assert wrap_emphasis("   ", True, False) == ""


def test_format_list_item_indents_two_spaces_per_level() -> None:
    assert format_list_item(0, False, 1, "a") == "- a"
    assert format_list_item(2, True, 3, "c") == "    3. c"


def test_fenced_block_grows_past_backtick_runs() -> None:
    assert fenced_block("x = 1", "python") == "```python\nx = 1\n```\n"
    block = fenced_block("use ```` here")
    assert block.startswith("`````\n")
    assert block.endswith("\n`````\n")


def test_inline_code_uses_a_longer_delimiter() -> None:
    assert inline_code("f()") == "`f()`"
    assert inline_code("a``b") == "```a``b```"
    assert inline_code("`tick") == "`` `tick ``"
