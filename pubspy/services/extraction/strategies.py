"""
Estratégias de extração de Publisher IDs.

Cada estratégia é uma função pura ``texto -> Set[str]`` que devolve IDs já
normalizados e validados. O extrator faz a união dos resultados; adicionar ou
remover uma estratégia não exige mexer na orquestração.
"""

import logging
import re
from collections import OrderedDict
from typing import Callable, Iterable, Set
from urllib.parse import parse_qsl, unquote, urlsplit

from bs4 import BeautifulSoup

from pubspy.core.identifiers import normalize_identifier

logger = logging.getLogger(__name__)

Strategy = Callable[[str], Set[str]]

# Captura bruta; a validação dos 16 dígitos fica com normalize_identifier
_RAW_ID_REGEX = re.compile(r"ca[-_]pub[-_]\d+", re.IGNORECASE)

# Atributos/variáveis conhecidos que carregam o ID
_ATTRIBUTE_REGEX = re.compile(
    r"""(?:data-ad-client|data-google-ad-client|data-adclient|data-publisher|
           google_ad_client|adClient|ad_client)
        \s*[:=]\s*["']?\s*((?:ca[-_])?pub[-_]\d+)""",
    re.IGNORECASE | re.VERBOSE,
)

# Fragmentos JSON: "client": "ca-pub-..."
_JSON_REGEX = re.compile(
    r'"(?:client|publisher|adClient|ad_client|google_ad_client)"\s*:\s*"([^"]{1,64})"',
    re.IGNORECASE,
)

# Marcadores de snippets de tag manager / analytics / loaders assíncronos
_TAG_MANAGER_MARKERS = re.compile(
    r"""gtag\s*\(|dataLayer\.push|google_tag_manager|googletagmanager\.com|
        google-analytics\.com|\bga\s*\(\s*['"]send|googlesyndication|
        adsbygoogle|createElement\s*\(\s*['"]script""",
    re.IGNORECASE | re.VERBOSE,
)
_TAG_MANAGER_WINDOW = 600


def _scan(text: str) -> Set[str]:
    """Varredura literal + normalização."""
    found: Set[str] = set()
    if not text:
        return found
    for raw in _RAW_ID_REGEX.findall(text):
        normalized = normalize_identifier(raw)
        if normalized:
            found.add(normalized)
    return found


def _normalize_all(captures: Iterable[str]) -> Set[str]:
    found: Set[str] = set()
    for raw in captures:
        normalized = normalize_identifier(raw)
        if normalized:
            found.add(normalized)
    return found


def _soup(text: str) -> BeautifulSoup:
    return BeautifulSoup(text, "html.parser")


def scan_page_source(text: str) -> Set[str]:
    """(a) Varredura literal do texto inteiro."""
    return _scan(text)


def scan_script_blocks(text: str) -> Set[str]:
    """(b) Conteúdo de <script> e seus atributos src."""
    found: Set[str] = set()
    if "<script" not in text.lower():
        return found
    for script in _soup(text).find_all("script"):
        found |= _scan(script.string or script.get_text() or "")
        src = script.get("src")
        if src:
            found |= _scan(unquote(src))
    return found


def scan_attributes(text: str) -> Set[str]:
    """(c) Pares chave/valor estilo data-* e nomes de atributo conhecidos."""
    return _normalize_all(_ATTRIBUTE_REGEX.findall(text))


def scan_iframe_sources(text: str) -> Set[str]:
    """(d) URLs de <iframe src> e seus parâmetros de query."""
    found: Set[str] = set()
    if "<iframe" not in text.lower():
        return found
    for iframe in _soup(text).find_all("iframe"):
        src = iframe.get("src") or iframe.get("data-src")
        if not src:
            continue
        found |= _scan(unquote(src))
        try:
            query = urlsplit(src).query
        except ValueError:
            continue
        for _key, value in parse_qsl(query, keep_blank_values=False):
            found |= _scan(value)
            found |= _normalize_all([value])
    return found


def scan_json_fragments(text: str) -> Set[str]:
    """(e) Fragmentos JSON ("client": "<id>")."""
    return _normalize_all(_JSON_REGEX.findall(text))


def scan_tag_manager_snippets(text: str) -> Set[str]:
    """(f) Configurações de GTM/gtag/analytics e loaders assíncronos."""
    found: Set[str] = set()
    for marker in _TAG_MANAGER_MARKERS.finditer(text):
        window = text[marker.start(): marker.start() + _TAG_MANAGER_WINDOW]
        found |= _scan(window)
    return found


# Registro ordenado de estratégias (nome -> função)
EXTRACTION_STRATEGIES: "OrderedDict[str, Strategy]" = OrderedDict([
    ("script_tags", scan_script_blocks),
    ("data_attributes", scan_attributes),
    ("iframes", scan_iframe_sources),
    ("page_source", scan_page_source),
    ("json_config", scan_json_fragments),
    ("tag_manager", scan_tag_manager_snippets),
])


def register_strategy(name: str, strategy: Strategy) -> None:
    """Adiciona (ou substitui) uma estratégia no registro global."""
    EXTRACTION_STRATEGIES[name] = strategy
    logger.debug(f"[Extractor] Estratégia registrada: {name}")


def unregister_strategy(name: str) -> None:
    EXTRACTION_STRATEGIES.pop(name, None)
