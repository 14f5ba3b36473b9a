from __future__ import annotations

from lxml import etree

from ..detection import DocumentType
from ..exceptions import MalformedDocumentError, XmlFailure
from ..markdown import fenced_block
from ..models import ConversionOptions, ConversionResult
from .base import AdapterResponse, BaseAdapter

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


def _trim_text(root: etree._Element) -> None:
    for node in root.iter():
        if isinstance(node.tag, str) and node.text is not None:
            node.text = node.text.strip() or None
        if node.tail is not None:
            node.tail = node.tail.strip() or None


def pretty_xml(data: bytes) -> str:
    """Re-indent with two spaces, trimming surrounding whitespace from text."""

    if not data.strip():
        raise MalformedDocumentError("empty XML document")
    parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as exc:
        raise XmlFailure(f"invalid XML: {exc}") from exc
    _trim_text(root)
    tree = root.getroottree()
    etree.indent(tree, space="  ")
    body = etree.tostring(tree, encoding="unicode").rstrip("\n")
    if data.removeprefix(b"\xef\xbb\xbf").lstrip().startswith(b"<?xml"):
        body = f"{XML_DECLARATION}\n{body}"
    return body


class XMLAdapter(BaseAdapter):
    document_type = DocumentType.XML
    extensions = frozenset({"xml"})

    def parse(self, data: bytes, options: ConversionOptions) -> AdapterResponse:
        return AdapterResponse(result=ConversionResult(markdown=fenced_block(pretty_xml(data), "xml")))
