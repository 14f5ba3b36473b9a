from __future__ import annotations

from functools import lru_cache
from typing import Type

from ..detection import normalize_extension
from ..exceptions import UnsupportedFormatError
from .base import Adapter, AdapterResponse, BaseAdapter, BaseMarkitdownAdapter, OoxmlAdapter
from .code import CodeAdapter
from .csv import CSVAdapter
from .docx import DOCXAdapter
from .html import HTMLAdapter
from .image import ImageAdapter
from .json import JSONAdapter
from .notebook import NotebookAdapter
from .pdf import PDFAdapter
from .pptx import PPTXAdapter
from .txt import TXTAdapter
from .xls import XLSAdapter
from .xlsx import XLSXAdapter
from .xml import XMLAdapter

# office formats first, plain text last as the fallback
_ADAPTER_CLASSES: tuple[Type[BaseAdapter], ...] = (
    DOCXAdapter,
    PPTXAdapter,
    XLSXAdapter,
    XLSAdapter,
    PDFAdapter,
    CSVAdapter,
    JSONAdapter,
    NotebookAdapter,
    XMLAdapter,
    HTMLAdapter,
    ImageAdapter,
    CodeAdapter,
    TXTAdapter,
)


@lru_cache(maxsize=len(_ADAPTER_CLASSES))
def _instantiate(adapter_cls: Type[BaseAdapter]) -> BaseAdapter:
    return adapter_cls()


def get_adapter(key: str) -> Adapter:
    """First registered adapter accepting ``key`` (an extension or format tag)."""

    key = normalize_extension(key)
    for adapter_cls in _ADAPTER_CLASSES:
        if adapter_cls.accepts(key):
            return _instantiate(adapter_cls).for_key(key)
    raise UnsupportedFormatError(key)


__all__ = [
    "Adapter",
    "AdapterResponse",
    "BaseAdapter",
    "BaseMarkitdownAdapter",
    "OoxmlAdapter",
    "get_adapter",
]
