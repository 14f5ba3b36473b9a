import pytest

from anytomd import ConversionOptions, convert_bytes
from anytomd.adapters.docx import parse_numbering, parse_styles
from anytomd.exceptions import MalformedDocumentError
from anytomd.models import ConversionResult, WarningCode

from builders import PNG_BYTES, W_NS, build_zip, make_docx, numbering_xml, rels_xml, w_paragraph

MC_NS = "http://schemas.openxmlformats.org/markup-compatibility/2006"


def w_table(rows: list[list[str]]) -> str:
    body = "".join(
        "<w:tr>" + "".join(f"<w:tc>{w_paragraph(cell)}</w:tc>" for cell in row) + "</w:tr>" for row in rows
    )
    return f"<w:tbl>{body}</w:tbl>"


def w_image(rel_id: str, descr: str = "") -> str:
    return (
        '<w:p><w:r><w:drawing><wp:inline>'
        f'<wp:docPr id="1" name="Picture 1" descr="{descr}"/>'
        '<a:graphic><a:graphicData><pic:pic xmlns:pic="http://schemas.openxmlformats.org/drawingml/2006/picture">'
        f'<pic:blipFill><a:blip r:embed="{rel_id}"/></pic:blipFill>'
        "</pic:pic></a:graphicData></a:graphic></wp:inline></w:drawing></w:r></w:p>"
    )


def convert_docx(data: bytes, **options: object):
    return convert_bytes(data, "docx", ConversionOptions(**options))


def test_heading_followed_by_bullet_list() -> None:
    body = w_paragraph("T", style="Heading1") + w_paragraph("one", num=("1", 0)) + w_paragraph("two", num=("1", 0))
    result = convert_docx(make_docx(body, numbering=numbering_xml({"1": ["bullet"]})))
    assert "# T\n" in result.markdown
    assert "# T\n\n- one\n- two\n" in result.markdown
    assert result.title == "T"
    assert result.warnings == []


def test_heading_from_style_display_name() -> None:
    styles = (
        f'<w:styles xmlns:w="{W_NS}"><w:style w:type="paragraph" w:styleId="Titre2">'
        '<w:name w:val="heading 2"/></w:style></w:styles>'
    )
    result = convert_docx(make_docx(w_paragraph("Section", style="Titre2"), styles=styles))
    assert result.markdown == "## Section\n"
    assert result.title is None


def test_title_is_first_level_one_heading() -> None:
    body = w_paragraph("First", style="Heading1") + w_paragraph("Second", style="Heading1")
    result = convert_docx(make_docx(body))
    assert result.title == "First"
    assert "# Second\n" in result.markdown


def test_ordered_list_counters_and_sub_level_reset() -> None:
    body = "".join(
        w_paragraph(text, num=("2", level))
        for text, level in [("a", 0), ("b", 1), ("c", 1), ("d", 0), ("e", 1)]
    )
    body += w_paragraph("after")
    result = convert_docx(make_docx(body, numbering=numbering_xml({"2": ["decimal", "lowerLetter"]})))
    assert result.markdown == "1. a\n  1. b\n  2. c\n2. d\n  1. e\n\nafter\n"


def test_list_without_numbering_part_defaults_to_bullets() -> None:
    body = w_paragraph("x", num=("5", 0)) + w_paragraph("y", num=("5", 0))
    result = convert_docx(make_docx(body))
    assert result.markdown == "- x\n- y\n"


def test_parse_numbering_with_level_override() -> None:
    data = numbering_xml({"1": ["bullet"]}).replace(
        '<w:abstractNumId w:val="0"/></w:num>',
        '<w:abstractNumId w:val="0"/><w:lvlOverride w:ilvl="0"><w:lvl w:ilvl="0">'
        '<w:numFmt w:val="decimal"/></w:lvl></w:lvlOverride></w:num>',
    )
    assert parse_numbering(data.encode(), ConversionResult()) == {("1", 0): True}


def test_parse_styles_malformed_keeps_partial_map() -> None:
    data = (
        f'<w:styles xmlns:w="{W_NS}"><w:style w:styleId="Big"><w:name w:val="Heading 3"/></w:style>'
        '<w:style w:styleId="Other">'
    ).encode()
    result = ConversionResult()
    assert parse_styles(data, result) == {"Big": 3}
    assert result.warnings[0].code is WarningCode.MALFORMED_SEGMENT


def test_run_formatting_breaks_and_tabs() -> None:
    body = (
        "<w:p>"
        "<w:r><w:t xml:space=\"preserve\">plain </w:t></w:r>"
        "<w:r><w:rPr><w:b/></w:rPr><w:t>bold</w:t></w:r>"
        "<w:r><w:t xml:space=\"preserve\"> </w:t></w:r>"
        "<w:r><w:rPr><w:i/><w:b w:val=\"0\"/></w:rPr><w:t>italic</w:t></w:r>"
        "<w:r><w:br/><w:t>next</w:t><w:tab/><w:t>col</w:t></w:r>"
        "</w:p>"
    )
    result = convert_docx(make_docx(body))
    assert result.markdown == "plain **bold** *italic*\nnext\tcol\n"


def test_hyperlinks() -> None:
    body = (
        '<w:p><w:hyperlink r:id="rId7"><w:r><w:t>site</w:t></w:r></w:hyperlink></w:p>'
        '<w:p><w:hyperlink w:anchor="intro"><w:r><w:t>jump</w:t></w:r></w:hyperlink></w:p>'
        '<w:p><w:hyperlink r:id="rId99"><w:r><w:t>orphan</w:t></w:r></w:hyperlink></w:p>'
    )
    rels = rels_xml(("rId7", "hyperlink", "https://example.com", "External"))
    result = convert_docx(make_docx(body, document_rels=rels))
    assert "[site](https://example.com)" in result.markdown
    assert "[jump](#intro)" in result.markdown
    assert "orphan\n" in result.markdown
    assert [warning.code for warning in result.warnings] == [WarningCode.SKIPPED_ELEMENT]
    assert "rId99" in result.warnings[0].message


def test_table_with_escaping_and_nested_table() -> None:
    nested = w_table([["x", "y"]])
    body = w_table([["H1", "H2"], ["a|b", "c"]])
    body += f"<w:tbl><w:tr><w:tc>{w_paragraph('outer')}</w:tc><w:tc>{nested}</w:tc></w:tr></w:tbl>"
    result = convert_docx(make_docx(body))
    assert "| H1 | H2 |\n|---|---|\n| a\\|b | c |\n" in result.markdown
    assert "| outer | x y |" in result.markdown


def test_alternate_content_fallback_is_skipped() -> None:
    body = (
        f'<w:p><mc:AlternateContent xmlns:mc="{MC_NS}">'
        "<mc:Choice Requires=\"wps\"><w:r><w:t>modern</w:t></w:r></mc:Choice>"
        "<mc:Fallback><w:r><w:t>legacy</w:t></w:r></mc:Fallback>"
        "</mc:AlternateContent></w:p>"
    )
    result = convert_docx(make_docx(body))
    assert result.markdown == "modern\n"


def test_image_alt_text_without_describer() -> None:
    rels = rels_xml(("rId5", "image", "media/image1.png"))
    data = make_docx(w_image("rId5", "A chart"), document_rels=rels, extra_parts={"word/media/image1.png": PNG_BYTES})
    result = convert_docx(data)
    assert result.markdown == "![A chart](image1.png)\n"
    assert result.images == []
    assert "__img_" not in result.markdown


def test_image_extraction_and_description() -> None:
    class Describer:
        def __init__(self) -> None:
            self.calls: list[tuple[bytes, str, str]] = []

        def describe(self, data: bytes, mime_type: str, prompt: str) -> str:
            self.calls.append((data, mime_type, prompt))
            return "a cat"

    describer = Describer()
    rels = rels_xml(("rId5", "image", "media/image1.png"))
    data = make_docx(w_image("rId5", "orig"), document_rels=rels, extra_parts={"word/media/image1.png": PNG_BYTES})
    result = convert_docx(data, extract_images=True, image_describer=describer)
    assert result.markdown == "![a cat](image1.png)\n"
    assert result.images == [("image1.png", PNG_BYTES)]
    assert describer.calls == [(PNG_BYTES, "image/png", "Describe this image concisely for use as alt text.")]


def test_external_image_uses_url_basename() -> None:
    rels = rels_xml(("rId7", "image", "https://example.com/img/photo.jpg?size=large", "External"))
    result = convert_docx(make_docx(w_image("rId7", "Remote"), document_rels=rels))
    assert result.markdown == "![Remote](photo.jpg)\n"
    assert result.warnings == []


def test_image_with_missing_relationship_is_skipped() -> None:
    result = convert_docx(make_docx(w_paragraph("text") + w_image("rId404")))
    assert result.markdown == "text\n"
    assert [warning.code for warning in result.warnings] == [WarningCode.SKIPPED_ELEMENT]


def test_missing_document_part_is_fatal() -> None:
    data = build_zip({"_rels/.rels": rels_xml(("rId1", "officeDocument", "word/document.xml")), "word/styles.xml": "<x/>"})
    with pytest.raises(MalformedDocumentError, match="word/document.xml"):
        convert_docx(data)


def test_truncated_document_keeps_parsed_content() -> None:
    document = (
        f'<w:document xmlns:w="{W_NS}"><w:body>'
        + w_paragraph("kept")
        + "<w:p><w:r><w:t>lost"
    )
    data = make_docx("", extra_parts={"word/document.xml": document})
    result = convert_docx(data)
    assert result.markdown == "kept\n"
    assert [warning.code for warning in result.warnings] == [WarningCode.MALFORMED_SEGMENT]


def test_cjk_and_emoji_survive() -> None:
    body = w_paragraph("見出し 🎉", style="Heading1") + w_paragraph("本文")
    result = convert_docx(make_docx(body))
    assert result.markdown == "# 見出し 🎉\n\n本文\n"
    assert result.title == "見出し 🎉"
