import pytest

from anytomd.exceptions import InputTooLargeError, Utf8Failure, ZipFailure
from anytomd.models import ConversionResult, WarningCode
from anytomd.ooxml import (
    OoxmlPackage,
    ParagraphBuffer,
    is_on,
    load_relationships,
    parse_relationships,
    rels_path_for,
    resolve_against_dir,
    resolve_against_file,
)

from builders import build_zip, rels_xml


def test_package_reads_parts_case_insensitively() -> None:
    data = build_zip({"word/Document.xml": "<doc/>", "word/media/a.png": b"\x89PNG"})
    with OoxmlPackage(data) as package:
        assert package.read_text("word/document.xml") == "<doc/>"
        assert package.read_bytes("/word/media/a.png") == b"\x89PNG"
        assert package.read_bytes("word/missing.xml") is None
        assert package.has_part("WORD/DOCUMENT.XML")
        assert sorted(package.names) == ["word/Document.xml", "word/media/a.png"]


def test_package_rejects_non_zip() -> None:
    with pytest.raises(ZipFailure):
        OoxmlPackage(b"not a zip")


def test_package_budget() -> None:
    data = build_zip({"a.xml": "x" * 2048})
    with OoxmlPackage(data) as package:
        assert package.uncompressed_size() == 2048
        package.check_budget(4096)
        with pytest.raises(InputTooLargeError) as excinfo:
            package.check_budget(1024)
    assert excinfo.value.size == 2048
    assert excinfo.value.limit == 1024


def test_read_text_rejects_invalid_utf8() -> None:
    with OoxmlPackage(build_zip({"a.xml": b"\xff\xfe\xfa"})) as package:
        with pytest.raises(Utf8Failure):
            package.read_text("a.xml")


def test_rels_path_for() -> None:
    assert rels_path_for("word/document.xml") == "word/_rels/document.xml.rels"
    assert rels_path_for("") == "_rels/.rels"


def test_resolve_targets() -> None:
    assert resolve_against_file("ppt/slides/slide1.xml", "../media/image1.png") == "ppt/media/image1.png"
    assert resolve_against_file("word/document.xml", "media/a.png") == "word/media/a.png"
    assert resolve_against_file("word/document.xml", "./media/a.png") == "word/media/a.png"
    assert resolve_against_file("word/document.xml", "/word/media/a.png") == "word/media/a.png"
    assert resolve_against_dir("", "../../x.xml") == "x.xml"


def test_parse_relationships() -> None:
    data = rels_xml(
        ("rId1", "image", "media/a.png"),
        ("rId2", "hyperlink", "https://example.com", "External"),
    ).encode()
    relationships = parse_relationships(data)
    assert relationships["rId1"].target == "media/a.png"
    assert relationships["rId1"].is_type("image")
    assert not relationships["rId1"].external
    assert relationships["rId2"].external


def test_malformed_relationships_keep_partial_map() -> None:
    data = rels_xml(("rId1", "image", "media/a.png")).encode().removesuffix(b"</Relationships>")
    result = ConversionResult()
    relationships = parse_relationships(data, result, location="x.rels")
    assert "rId1" in relationships
    assert [warning.code for warning in result.warnings] == [WarningCode.MALFORMED_SEGMENT]


def test_load_relationships_missing_part_is_empty() -> None:
    with OoxmlPackage(build_zip({"word/document.xml": "<d/>"})) as package:
        assert load_relationships(package, "word/document.xml") == {}


def test_is_on() -> None:
    assert is_on(None)
    assert is_on("1")
    assert is_on("true")
    assert not is_on("0")
    assert not is_on("false")


def test_paragraph_buffer_emphasis_and_links() -> None:
    buffer = ParagraphBuffer()
    buffer.begin_run()
    buffer.append_text("plain ")
    buffer.begin_run()
    buffer.bold = True
    buffer.append_text("bold")
    buffer.begin_run()
    buffer.append_text(" and ")
    buffer.begin_hyperlink("https://example.com")
    buffer.begin_run()
    buffer.append_text("link")
    buffer.end_hyperlink(ConversionResult())
    assert buffer.text() == "plain **bold** and [link](https://example.com)"
    assert buffer.plain_text() == "plain bold and link"


def test_paragraph_buffer_missing_hyperlink_target() -> None:
    result = ConversionResult()
    buffer = ParagraphBuffer()
    buffer.begin_hyperlink(None, missing_id="rId9")
    buffer.append_text("orphan")
    buffer.end_hyperlink(result, "word/document.xml")
    assert buffer.text() == "orphan"
    assert result.warnings[0].code is WarningCode.SKIPPED_ELEMENT
    assert "rId9" in result.warnings[0].message
