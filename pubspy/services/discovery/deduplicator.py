"""
Deduplicação de hits de busca em domínios candidatos.
"""

import logging
import re
from dataclasses import replace
from typing import AbstractSet, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from pubspy.core.constants import EXCLUDED_DOMAINS
from pubspy.services.models import DomainCandidate, SearchHit

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
TITLE_MAX_LENGTH = 100


def canonical_domain(link: str) -> Optional[str]:
    """
    Hostname em minúsculas sem "www." inicial.

    Link que não é uma URL absoluta com host não gera domínio (None).
    """
    if not link or not isinstance(link, str):
        return None
    try:
        parts = urlsplit(link.strip())
        host = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not host:
        return None
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host or None


def is_excluded_domain(domain: str, excluded: AbstractSet[str] = EXCLUDED_DOMAINS) -> bool:
    """Match exato ou subdomínio de um domínio da lista de exclusão."""
    for blocked in excluded:
        if domain == blocked or domain.endswith("." + blocked):
            return True
    return False


def clean_title(title: str) -> str:
    return _WHITESPACE.sub(" ", title or "").strip()[:TITLE_MAX_LENGTH]


def deduplicate(
    hits: Iterable[SearchHit],
    excluded: AbstractSet[str] = EXCLUDED_DOMAINS,
) -> List[DomainCandidate]:
    """
    Converte hits em candidatos únicos, preservando a ordem de primeira aparição.
    """
    seen = set()
    candidates: List[DomainCandidate] = []
    dropped_invalid = dropped_excluded = 0

    for hit in hits:
        domain = canonical_domain(hit.link)
        if domain is None:
            dropped_invalid += 1
            continue
        if is_excluded_domain(domain, excluded):
            dropped_excluded += 1
            continue
        if domain in seen:
            continue
        seen.add(domain)
        candidates.append(DomainCandidate(
            domain=domain,
            title=clean_title(hit.title),
            snippet=hit.snippet or "",
            origin_query=hit.query,
        ))

    logger.debug(
        f"[Dedup] {len(candidates)} candidatos únicos "
        f"(inválidos={dropped_invalid}, excluídos={dropped_excluded})"
    )
    return candidates


def merge_candidates(groups: Iterable[Iterable[DomainCandidate]]) -> List[DomainCandidate]:
    """
    Junta candidatos de vários publisher IDs.

    Verificado prevalece sobre não verificado; IDs de origem são unidos.
    """
    merged: Dict[str, DomainCandidate] = {}
    for group in groups:
        for candidate in group:
            key = candidate.domain.lower()
            existing = merged.get(key)
            if existing is None:
                merged[key] = replace(
                    candidate, source_identifiers=list(candidate.source_identifiers)
                )
                continue
            for identifier in candidate.source_identifiers:
                if identifier not in existing.source_identifiers:
                    existing.source_identifiers.append(identifier)
            if candidate.verified and not existing.verified:
                existing.verified = True
                existing.verification_method = candidate.verification_method
            existing.last_checked = max(existing.last_checked, candidate.last_checked)
    return list(merged.values())
