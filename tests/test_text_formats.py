import json

import pytest

from anytomd import convert_bytes
from anytomd.exceptions import MalformedDocumentError, Utf8Failure, XmlFailure
from anytomd.models import WarningCode


def test_csv_to_table() -> None:
    result = convert_bytes(b"A,B,C\n1,2,3\n4,5,6\n", "csv")
    assert result.markdown == "| A | B | C |\n|---|---|---|\n| 1 | 2 | 3 |\n| 4 | 5 | 6 |\n"
    assert result.warnings == []


def test_csv_pipe_is_escaped() -> None:
    result = convert_bytes(b"A,B\nx|y,z\n", "csv")
    assert "| x\\|y | z |" in result.markdown


def test_csv_bom_and_quoted_fields() -> None:
    data = '\ufeffname,"note, quoted"\n"Doe, J",ok\n'.encode("utf-8")
    result = convert_bytes(data, "csv")
    assert result.markdown.startswith("| name | note, quoted |\n")
    assert "| Doe, J | ok |" in result.markdown


def test_csv_ragged_rows_follow_header_width() -> None:
    result = convert_bytes(b"a,b\n1\n2,3,4\n", "csv")
    assert "| 1 |  |\n| 2 | 3 |\n" in result.markdown


def test_csv_cjk_and_emoji() -> None:
    result = convert_bytes("列,😀\n値,✓\n".encode("utf-8"), "csv")
    assert "| 列 | 😀 |" in result.markdown
    assert "| 値 | ✓ |" in result.markdown


def test_csv_empty_input() -> None:
    assert convert_bytes(b"", "csv").markdown == ""


def test_csv_rejects_invalid_utf8() -> None:
    with pytest.raises(Utf8Failure):
        convert_bytes(b"a,b\n\xff\xfe,c\n", "csv")


def test_json_is_pretty_printed_in_a_fence() -> None:
    result = convert_bytes(b'{"a":[1,2],"b":"\xe6\x97\xa5"}', "json")
    assert result.markdown == '```json\n{\n  "a": [\n    1,\n    2\n  ],\n  "b": "日"\n}\n```\n'


def test_json_with_bom() -> None:
    result = convert_bytes(b'\xef\xbb\xbf{"k": null}', "json")
    assert '"k": null' in result.markdown


def test_json_fence_grows_around_backticks() -> None:
    payload = json.dumps({"code": "```sh\nls\n```"}).encode()
    result = convert_bytes(payload, "json")
    assert result.markdown.startswith("````json\n")
    assert result.markdown.endswith("\n````\n")


def test_invalid_json_is_malformed() -> None:
    with pytest.raises(MalformedDocumentError):
        convert_bytes(b'{"a": ', "json")


def test_xml_is_reindented() -> None:
    data = b'<?xml version="1.0"?>\n<root>\n    <a>1</a>    <b/>\n</root>'
    result = convert_bytes(data, "xml")
    assert result.markdown == (
        '```xml\n<?xml version="1.0" encoding="UTF-8"?>\n<root>\n  <a>1</a>\n  <b/>\n</root>\n```\n'
    )


def test_xml_without_declaration() -> None:
    result = convert_bytes(b"<note><to>Ana</to></note>", "xml")
    assert result.markdown == "```xml\n<note>\n  <to>Ana</to>\n</note>\n```\n"


def test_empty_xml_is_malformed() -> None:
    with pytest.raises(MalformedDocumentError):
        convert_bytes(b"  \n", "xml")


def test_invalid_xml_is_an_xml_failure() -> None:
    with pytest.raises(XmlFailure, match="invalid XML") as excinfo:
        convert_bytes(b"<open><unclosed></open>", "xml")
    assert excinfo.value.code == "XML_FAILURE"


def test_xml_text_is_trimmed() -> None:
    result = convert_bytes(b"<a>\n  <b>  y  </b>\n  <c>\tz\n</c>\n</a>", "xml")
    assert result.markdown == "```xml\n<a>\n  <b>y</b>\n  <c>z</c>\n</a>\n```\n"


@pytest.mark.parametrize(
    ("extension", "language"),
    [("py", "python"), ("rs", "rust"), ("ts", "typescript"), ("h", "c"), ("sh", "bash")],
)
def test_source_files_are_fenced_with_language(extension: str, language: str) -> None:
    result = convert_bytes(b"x = 1\n\n", extension)
    assert result.markdown == f"```{language}\nx = 1\n```\n"


def test_plain_text_passes_through() -> None:
    result = convert_bytes("héllo\nworld\n".encode("utf-8"), "txt")
    assert result.markdown == "héllo\nworld\n"
    assert result.warnings == []


def test_plain_text_windows_1252_fallback_warns() -> None:
    result = convert_bytes(b"caf\xe9", "md")
    assert result.markdown == "café"
    assert [w.code for w in result.warnings] == [WarningCode.UNSUPPORTED_FEATURE]


def notebook(cells: list[dict], metadata: dict | None = None) -> bytes:
    return json.dumps({"cells": cells, "metadata": metadata or {}, "nbformat": 4}).encode("utf-8")


def test_notebook_cells_render_in_order() -> None:
    data = notebook(
        [
            {"cell_type": "markdown", "source": ["# Intro\n", "Some text"]},
            {"cell_type": "code", "source": ["x = 1\n", "x"], "outputs": [{"text": "1"}]},
            {"cell_type": "raw", "source": "raw text"},
        ],
        metadata={"kernelspec": {"language": "python", "name": "python3"}},
    )
    result = convert_bytes(data, "ipynb")
    assert result.markdown == "# Intro\nSome text\n\n```python\nx = 1\nx\n```\n\n```\nraw text\n```\n"
    assert result.title == "Intro"


def test_notebook_language_from_language_info_and_metadata_title() -> None:
    data = notebook(
        [{"cell_type": "code", "source": "println(1)"}],
        metadata={"language_info": {"name": "julia"}, "title": "Analysis"},
    )
    result = convert_bytes(data, "ipynb")
    assert result.markdown == "```julia\nprintln(1)\n```\n"
    assert result.title == "Analysis"


def test_notebook_skips_empty_and_unknown_cells() -> None:
    data = notebook(
        [
            {"cell_type": "code", "source": ["   \n"]},
            {"cell_type": "widget", "source": "?"},
            {"cell_type": "markdown", "source": "text"},
        ]
    )
    result = convert_bytes(data, "ipynb")
    assert result.markdown == "text\n"
    assert [(w.code, w.location) for w in result.warnings] == [(WarningCode.SKIPPED_ELEMENT, "cell 1")]


@pytest.mark.parametrize("data", [b"{not json", b'{"metadata": {}}', b"[]"])
def test_malformed_notebooks(data: bytes) -> None:
    with pytest.raises(MalformedDocumentError):
        convert_bytes(data, "ipynb")
