"""
Fetch HTTP compartilhado (páginas e arquivos ads.txt).
"""

from .http_client import (
    FetchResult,
    fetch_text,
    get_http_client,
    close_http_client,
)

__all__ = [
    "FetchResult",
    "fetch_text",
    "get_http_client",
    "close_http_client",
]
