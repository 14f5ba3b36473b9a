from __future__ import annotations

import io
from typing import Iterator

from lxml import etree

from .namespaces import local_name

XMLSyntaxError = etree.XMLSyntaxError


def iter_events(data: bytes) -> Iterator[tuple[str, str, etree._Element]]:
    """Stream ``(event, local_name, element)`` triples from an XML part.

    Entities are never resolved and nothing is fetched from the network.
    Elements are cleared once their end event has been consumed, so
    handlers must read text and attributes while handling the event.
    """

    parser = etree.iterparse(
        io.BytesIO(data),
        events=("start", "end"),
        resolve_entities=False,
        no_network=True,
        remove_comments=True,
        remove_pis=True,
    )
    for event, element in parser:
        yield event, local_name(element.tag), element
        if event == "end":
            element.clear(keep_tail=True)


__all__ = ["XMLSyntaxError", "iter_events"]
