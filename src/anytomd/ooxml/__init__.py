from .package import OoxmlPackage
from .relationships import (
    Relationship,
    load_relationships,
    parse_relationships,
    rels_path_for,
    resolve_against_dir,
    resolve_against_file,
)
from .text import ParagraphBuffer, is_on

__all__ = [
    "OoxmlPackage",
    "ParagraphBuffer",
    "Relationship",
    "is_on",
    "load_relationships",
    "parse_relationships",
    "rels_path_for",
    "resolve_against_dir",
    "resolve_against_file",
]
