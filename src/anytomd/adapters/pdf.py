from __future__ import annotations

from ..detection import DocumentType
from .base import BaseMarkitdownAdapter


class PDFAdapter(BaseMarkitdownAdapter):
    document_type = DocumentType.PDF
    extensions = frozenset({"pdf"})
