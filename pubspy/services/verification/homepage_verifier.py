"""
Verificador por conteúdo da homepage (heurística, confiança fraca).

Qualquer página pode citar um publisher ID (fóruns, artigos, listas),
então um match aqui nunca equivale à autorização do ads.txt.
"""

import logging
import re
from typing import List, Optional

import httpx

from pubspy.configs.config_loader import get_section
from pubspy.core.identifiers import strip_prefix
from pubspy.services.fetcher import fetch_text
from pubspy.services.models import VerificationMethod, VerificationResult

logger = logging.getLogger(__name__)


def build_patterns(identifier: str) -> List[re.Pattern]:
    """Padrões aceitos: ID completo, ID sem prefixo e atributos de cliente."""
    full = re.escape(identifier)
    digits = re.escape(strip_prefix(identifier))
    return [
        re.compile(full, re.IGNORECASE),
        re.compile(rf"(?<!\d){digits}(?!\d)"),
        re.compile(rf"google_ad_client.{{0,40}}?{full}", re.IGNORECASE | re.DOTALL),
        re.compile(rf"data-ad-client.{{0,40}}?{full}", re.IGNORECASE | re.DOTALL),
    ]


def content_mentions_identifier(content: str, identifier: str) -> bool:
    return any(pattern.search(content) for pattern in build_patterns(identifier))


class HomepageVerifier:
    """GET https://<domínio> e busca o ID no HTML."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        cfg = get_section("verification/verifier", {})
        self._timeout = timeout if timeout is not None else cfg.get("homepage_timeout", 5.0)
        self._client = client

    async def verify(self, domain: str, identifier: str) -> VerificationResult:
        url = f"https://{domain}"
        result = await fetch_text(url, timeout=self._timeout, client=self._client)
        if not result.ok:
            logger.debug(f"[Homepage] {domain}: falha no fetch ({result.error})")
            return VerificationResult.not_verified(detail=result.error)

        if content_mentions_identifier(result.text, identifier):
            logger.info(f"✅ [Homepage] {domain}: ID encontrado no conteúdo (heurística)")
            return VerificationResult(True, VerificationMethod.CONTENT_HEURISTIC)

        return VerificationResult.not_verified()
