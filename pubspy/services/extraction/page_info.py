"""
Extração de informações básicas de uma página (título, idioma, charset).
"""

import logging
import re
from dataclasses import asdict, dataclass
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_CHARSET_CONTENT_REGEX = re.compile(r"charset=([^\"';\s]+)", re.IGNORECASE)


@dataclass
class PageInfo:
    title: str
    url: str
    domain: str
    language: str = "unknown"
    charset: str = "unknown"
    description: str = ""
    fetched: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


def _clean_text(text: str, limit: int = 200) -> str:
    return _WHITESPACE.sub(" ", text).strip()[:limit]


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "unknown").lower()
    except ValueError:
        return "unknown"


def extract_page_info(html: str, url: str) -> PageInfo:
    soup = BeautifulSoup(html or "", "html.parser")

    title = "untitled"
    if soup.title and soup.title.string:
        title = _clean_text(soup.title.string) or title

    language = "unknown"
    html_tag = soup.find("html")
    if html_tag is not None and html_tag.get("lang"):
        language = html_tag.get("lang")

    charset = "unknown"
    meta_charset = soup.find("meta", attrs={"charset": True})
    if meta_charset is not None:
        charset = meta_charset.get("charset")
    else:
        meta_ct = soup.find("meta", attrs={"content": _CHARSET_CONTENT_REGEX})
        if meta_ct is not None:
            match = _CHARSET_CONTENT_REGEX.search(meta_ct.get("content", ""))
            if match:
                charset = match.group(1)

    description = ""
    meta_desc = soup.find("meta", attrs={"name": "description"})
    if meta_desc is not None and meta_desc.get("content"):
        description = _clean_text(meta_desc.get("content"), limit=300)

    return PageInfo(
        title=title,
        url=url,
        domain=_hostname(url),
        language=language,
        charset=charset,
        description=description,
    )


def basic_page_info(url: str) -> PageInfo:
    """Informações mínimas quando a página não pôde ser obtida."""
    domain = _hostname(url)
    return PageInfo(
        title=f"{domain} - informações indisponíveis",
        url=url,
        domain=domain,
        fetched=False,
    )
