"""
Orquestração da verificação de candidatos em lotes.

ads.txt primeiro (autoritativo); homepage só quando o ads.txt não confirma.
Falha de um candidato nunca afeta os outros do lote.

Com um TTLCache, o resultado da cadeia por (domínio, ID) fica em cache na
classe domain_verification; resultados com erro só pelo TTL de api_response.
"""

import asyncio
import logging
import time
from typing import List, Optional, Sequence

from pubspy.configs.config_loader import get_section
from pubspy.services.discovery_manager import TTLCache, TTLClass
from pubspy.services.models import (
    DomainCandidate,
    VerificationMethod,
    VerificationResult,
)
from .ads_txt_verifier import AdsTxtVerifier
from .homepage_verifier import HomepageVerifier

logger = logging.getLogger(__name__)


def _as_result(value) -> VerificationResult:
    # Entradas importadas via import_json voltam como dict
    if isinstance(value, VerificationResult):
        return value
    return VerificationResult(
        verified=bool(value["verified"]),
        method=VerificationMethod(value["method"]),
        detail=value.get("detail"),
    )


class VerificationOrchestrator:
    """
    Verifica até ``max_candidates`` candidatos, ``batch_size`` por vez.

    Lotes rodam em sequência com pausa entre eles; dentro do lote os
    candidatos são verificados concorrentemente via asyncio.gather.
    """

    def __init__(
        self,
        ads_txt: Optional[AdsTxtVerifier] = None,
        homepage: Optional[HomepageVerifier] = None,
        max_candidates: Optional[int] = None,
        batch_size: Optional[int] = None,
        batch_pause: Optional[float] = None,
        cache: Optional[TTLCache] = None,
    ):
        cfg = get_section("verification/verifier", {})
        self.ads_txt = ads_txt or AdsTxtVerifier(cache=cache)
        self.homepage = homepage or HomepageVerifier()
        self.max_candidates = max_candidates if max_candidates is not None else cfg.get("max_candidates", 15)
        self.batch_size = batch_size or cfg.get("batch_size", 5)
        self.batch_pause = batch_pause if batch_pause is not None else cfg.get("batch_pause", 0.5)
        self._cache = cache

        self._verified_total = 0
        self._checked_total = 0
        self._errors_total = 0

    async def verify_one(self, domain: str, identifier: str) -> VerificationResult:
        """Cadeia ads.txt → homepage para um domínio (pelo cache quando houver um)."""
        if self._cache is None:
            return await self._verify_chain(domain, identifier)

        key = TTLCache.generate_key(TTLClass.DOMAIN_VERIFICATION.value, domain, identifier)
        computed = False

        async def producer() -> VerificationResult:
            nonlocal computed
            computed = True
            return await self._verify_chain(domain, identifier)

        result = _as_result(await self._cache.get_or_compute(key, producer, TTLClass.DOMAIN_VERIFICATION))
        if computed and result.method is VerificationMethod.ERROR:
            await self._cache.set(key, result, TTLClass.API_RESPONSE)
        return result

    async def _verify_chain(self, domain: str, identifier: str) -> VerificationResult:
        result = await self.ads_txt.verify(domain, identifier)
        if result.verified:
            return result

        homepage_result = await self.homepage.verify(domain, identifier)
        if homepage_result.verified:
            return homepage_result

        if result.method is VerificationMethod.ERROR:
            return result
        return VerificationResult.not_verified()

    async def verify_candidates(
        self,
        candidates: Sequence[DomainCandidate],
        identifier: str,
    ) -> List[DomainCandidate]:
        """
        Retorna a lista na ordem original, cada item uma cópia nova.

        Candidatos além do limite voltam não verificados (method=none).
        """
        start = time.perf_counter()
        head = list(candidates[:self.max_candidates])
        tail = list(candidates[self.max_candidates:])
        verified: List[DomainCandidate] = []

        for offset in range(0, len(head), self.batch_size):
            batch = head[offset:offset + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.verify_one(c.domain, identifier) for c in batch),
                return_exceptions=True,
            )
            for candidate, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        raise outcome
                    logger.warning(
                        f"⚠️ [Verify] {candidate.domain}: {type(outcome).__name__}: {outcome}"
                    )
                    self._errors_total += 1
                    outcome = VerificationResult.not_verified(VerificationMethod.ERROR, str(outcome))
                verified.append(candidate.with_verification(outcome))

            if offset + self.batch_size < len(head) and self.batch_pause > 0:
                await asyncio.sleep(self.batch_pause)

        verified.extend(c.with_verification(VerificationResult.not_verified()) for c in tail)

        confirmed = sum(1 for c in verified if c.verified)
        self._checked_total += len(head)
        self._verified_total += confirmed
        logger.info(
            f"🎯 [Verify] {identifier}: {confirmed}/{len(head)} verificados "
            f"({len(tail)} além do limite) em {(time.perf_counter() - start) * 1000:.0f}ms"
        )
        return verified

    def get_status(self) -> dict:
        return {
            "max_candidates": self.max_candidates,
            "batch_size": self.batch_size,
            "batch_pause": self.batch_pause,
            "checked_total": self._checked_total,
            "verified_total": self._verified_total,
            "errors_total": self._errors_total,
        }

    def reset_metrics(self):
        self._verified_total = 0
        self._checked_total = 0
        self._errors_total = 0
