from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass

from ..models import ConversionResult, WarningCode
from .package import OoxmlPackage
from .streaming import XMLSyntaxError, iter_events

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Relationship:
    id: str
    target: str
    type: str
    external: bool = False

    def is_type(self, kind: str) -> bool:
        """Match the last segment of the relationship type URI."""

        return self.type.rsplit("/", 1)[-1] == kind


def rels_path_for(part: str) -> str:
    directory, _, name = part.lstrip("/").rpartition("/")
    if directory:
        return f"{directory}/_rels/{name}.rels"
    return f"_rels/{name}.rels"


def resolve_against_dir(base_dir: str, target: str) -> str:
    if target.startswith("/"):
        return target.lstrip("/")
    segments = [segment for segment in base_dir.split("/") if segment]
    while True:
        if target.startswith("../"):
            if segments:
                segments.pop()
            target = target[3:]
        elif target.startswith("./"):
            target = target[2:]
        else:
            break
    segments.append(target)
    return "/".join(segments)


def resolve_against_file(part: str, target: str) -> str:
    return resolve_against_dir(posixpath.dirname(part.lstrip("/")), target)


def parse_relationships(
    data: bytes, result: ConversionResult | None = None, *, location: str | None = None
) -> dict[str, Relationship]:
    """Collect every ``Relationship`` element keyed by its ``Id``.

    Malformed XML stops the scan; what was read so far is returned and a
    warning is attached to ``result`` when one is given.
    """

    relationships: dict[str, Relationship] = {}
    try:
        for event, name, element in iter_events(data):
            if event != "start" or name != "Relationship":
                continue
            rel_id = element.get("Id")
            target = element.get("Target")
            if not rel_id or target is None:
                continue
            relationships[rel_id] = Relationship(
                id=rel_id,
                target=target,
                type=element.get("Type", ""),
                external=element.get("TargetMode", "").lower() == "external",
            )
    except XMLSyntaxError as exc:
        logger.debug("malformed relationships part %s: %s", location, exc)
        if result is not None:
            result.warn(WarningCode.MALFORMED_SEGMENT, f"malformed relationships: {exc}", location)
    return relationships


def load_relationships(
    package: OoxmlPackage, part: str, result: ConversionResult | None = None
) -> dict[str, Relationship]:
    """Relationships governing ``part``; an absent ``.rels`` part is an empty map."""

    rels_path = rels_path_for(part)
    data = package.read_bytes(rels_path)
    if data is None:
        return {}
    return parse_relationships(data, result, location=rels_path)


__all__ = [
    "Relationship",
    "load_relationships",
    "parse_relationships",
    "rels_path_for",
    "resolve_against_dir",
    "resolve_against_file",
]
