"""
Módulo de Extração.

Detecta Publisher IDs em markup bruto (várias estratégias independentes)
e extrai informações básicas da página analisada.
"""

from .identifier_extractor import (
    IdentifierExtractor,
    identifier_extractor,
    extract_identifiers,
)
from .page_info import PageInfo, extract_page_info, basic_page_info
from .strategies import (
    EXTRACTION_STRATEGIES,
    register_strategy,
    unregister_strategy,
)

__all__ = [
    "IdentifierExtractor",
    "identifier_extractor",
    "extract_identifiers",
    "PageInfo",
    "extract_page_info",
    "basic_page_info",
    "EXTRACTION_STRATEGIES",
    "register_strategy",
    "unregister_strategy",
]
