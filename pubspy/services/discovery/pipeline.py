"""
Pipeline de discovery - composição dos componentes.

Fluxo discover_domains:
    validar ID → cache (adsense_search) → planejar queries → buscar →
    deduplicar → verificar → DiscoveryResult

Fluxo analyze_target:
    validar URL → cache (html_analysis) → baixar página → extrair IDs e
    info da página → discover para cada ID → merge

Resultados degradados (provedor não configurado ou indisponível, nenhum
candidato, página indisponível, discovery incompleto na análise) são
regravados no cache com o TTL curto de api_response para não prender o
modo degradado pelo TTL completo da classe. Com o provedor indisponível, um
resultado anterior já expirado ainda é servido no lugar do fallback.
"""

import asyncio
import logging
import time
from typing import Any, List, Optional, Tuple, Type, TypeVar
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel

from pubspy.core.constants import DEMO_DOMAINS
from pubspy.core.exceptions import InvalidTargetError, PageFetchError, ProviderUnavailableError
from pubspy.core.identifiers import validate_identifier
from pubspy.schemas.discovery import (
    AnalysisResult,
    DiscoveryResult,
    DomainInfo,
    PageInfoSchema,
    ProviderTestResult,
)
from pubspy.services.discovery_manager import SearchBatch, SearchGateway, TTLCache, TTLClass
from pubspy.services.extraction import (
    IdentifierExtractor,
    basic_page_info,
    extract_page_info,
    identifier_extractor,
)
from pubspy.services.extraction.page_info import PageInfo
from pubspy.services.fetcher import fetch_text
from pubspy.services.models import CandidateSource, DomainCandidate
from pubspy.services.verification import AdsTxtVerifier, VerificationOrchestrator
from .deduplicator import canonical_domain, deduplicate, merge_candidates
from .query_planner import plan_queries

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

PAGE_FETCH_TIMEOUT = 10.0
DIAGNOSTIC_QUERY = "google adsense"

REASON_NOT_CONFIGURED = "provider_not_configured"
REASON_NO_CANDIDATES = "no_candidates"
REASON_PROVIDER_UNAVAILABLE = "provider_unavailable"
REASON_DISCOVERY_DEGRADED = "discovery_degraded"


def _coerce(model: Type[ModelT], value: Any) -> ModelT:
    # Entradas importadas via import_json voltam como dict
    if isinstance(value, model):
        return value
    return model.model_validate(value)


def normalize_target_url(target: str) -> Tuple[str, str]:
    """
    Normaliza a URL alvo e retorna (url, host).

    Sem esquema assume https://. Apenas http/https com host são aceitos.

    Raises:
        InvalidTargetError: URL vazia, esquema não suportado ou sem host
    """
    if not isinstance(target, str) or not target.strip():
        raise InvalidTargetError(target, "URL vazia")

    url = target.strip()
    if "://" not in url:
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        raise InvalidTargetError(target)

    if parts.scheme not in ("http", "https"):
        raise InvalidTargetError(target, "Esquema não suportado")
    if not host or "." not in host:
        raise InvalidTargetError(target, "URL sem host válido")

    return url, host.lower()


def build_demo_domains(identifier: str) -> List[DomainInfo]:
    """Domínios de demonstração, determinísticos e nunca verificados."""
    return [
        DomainInfo.from_candidate(DomainCandidate(
            domain=domain,
            title=title,
            snippet=f"Dados de demonstração para {identifier}",
            source=CandidateSource.DEMO,
            source_identifiers=[identifier],
        ))
        for domain, title in DEMO_DOMAINS
    ]


class DiscoveryPipeline:
    """
    Orquestra busca, deduplicação, verificação e cache.

    O cache é sempre uma instância explícita; sem argumento, o pipeline
    cria a sua própria.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        gateway: Optional[SearchGateway] = None,
        orchestrator: Optional[VerificationOrchestrator] = None,
        extractor: Optional[IdentifierExtractor] = None,
        page_client: Optional[httpx.AsyncClient] = None,
        page_timeout: float = PAGE_FETCH_TIMEOUT,
        extended_queries: bool = True,
    ):
        self.cache = cache if cache is not None else TTLCache()
        self.gateway = gateway or SearchGateway()
        self.orchestrator = orchestrator or VerificationOrchestrator(
            ads_txt=AdsTxtVerifier(cache=self.cache),
            cache=self.cache,
        )
        self.extractor = extractor or identifier_extractor
        self._page_client = page_client
        self._page_timeout = page_timeout
        self._extended_queries = extended_queries

    # ------------------------------------------------------------------
    # discover_domains
    # ------------------------------------------------------------------

    async def discover_domains(self, identifier: str) -> DiscoveryResult:
        """
        Descobre domínios que compartilham o publisher ID.

        Raises:
            InvalidIdentifierError: ID fora do formato (antes de qualquer I/O)
        """
        pub_id = validate_identifier(identifier)
        key = TTLCache.generate_key(TTLClass.ADSENSE_SEARCH.value, pub_id)
        computed = False

        async def producer() -> DiscoveryResult:
            nonlocal computed
            computed = True
            return await self._run_discovery(pub_id)

        try:
            value = await self.cache.get_or_compute(key, producer, TTLClass.ADSENSE_SEARCH)
        except ProviderUnavailableError as e:
            # Sem resultado anterior (nem expirado) para servir no lugar
            logger.warning(f"⚠️ [Pipeline] {e}, modo fallback: {pub_id}")
            result = self._fallback_result(pub_id, e.reason, e.queries_executed)
            await self.cache.set(key, result, TTLClass.API_RESPONSE)
            return result

        result = _coerce(DiscoveryResult, value)

        if computed and result.degraded:
            await self.cache.set(key, result, TTLClass.API_RESPONSE)
        return result

    async def _search(self, queries: List[str]) -> SearchBatch:
        """
        Raises:
            ProviderUnavailableError: provedor não configurado, todas as queries
                falharam, ou o provedor recusou o acesso antes de qualquer hit
        """
        if not self.gateway.is_configured:
            raise ProviderUnavailableError(REASON_NOT_CONFIGURED)

        batch = await self.gateway.run_queries(queries)
        if batch.all_failed or (batch.aborted_reason and not batch.hits):
            raise ProviderUnavailableError(
                REASON_PROVIDER_UNAVAILABLE,
                detail=", ".join(batch.errors),
                queries_executed=batch.executed,
            )
        return batch

    async def _run_discovery(self, pub_id: str) -> DiscoveryResult:
        start = time.perf_counter()

        queries = plan_queries(pub_id, extended=self._extended_queries)
        batch = await self._search(queries)
        candidates = deduplicate(batch.hits)

        if not candidates:
            logger.warning(f"⚠️ [Pipeline] Nenhum candidato encontrado, modo fallback: {pub_id}")
            return self._fallback_result(pub_id, REASON_NO_CANDIDATES, batch.executed)

        for candidate in candidates:
            candidate.source_identifiers = [pub_id]

        verified = await self.orchestrator.verify_candidates(candidates, pub_id)
        domains = [DomainInfo.from_candidate(c) for c in verified]
        verified_count = sum(1 for d in domains if d.verified)

        logger.info(
            f"✅ [Pipeline] {pub_id}: {len(domains)} domínios, {verified_count} verificados "
            f"({len(batch.hits)} hits) em {(time.perf_counter() - start) * 1000:.0f}ms"
        )
        return DiscoveryResult(
            identifier=pub_id,
            domains=domains,
            total_results=len(domains),
            verified_count=verified_count,
            source="search",
            queries_executed=batch.executed,
        )

    def _fallback_result(self, pub_id: str, reason: str, queries_executed: int = 0) -> DiscoveryResult:
        return DiscoveryResult(
            identifier=pub_id,
            domains=[],
            demo_domains=build_demo_domains(pub_id),
            total_results=0,
            verified_count=0,
            source="fallback",
            degraded=True,
            degraded_reason=reason,
            queries_executed=queries_executed,
        )

    # ------------------------------------------------------------------
    # analyze_target
    # ------------------------------------------------------------------

    async def analyze_target(self, target: str) -> AnalysisResult:
        """
        Analisa uma página: IDs presentes, info da página e domínios relacionados.

        Raises:
            InvalidTargetError: URL inválida (antes de qualquer I/O)
        """
        url, host = normalize_target_url(target)
        key = TTLCache.generate_key(TTLClass.HTML_ANALYSIS.value, host)
        computed = False

        async def producer() -> AnalysisResult:
            nonlocal computed
            computed = True
            return await self._run_analysis(url)

        value = await self.cache.get_or_compute(key, producer, TTLClass.HTML_ANALYSIS)
        result = _coerce(AnalysisResult, value)

        if computed and result.degraded:
            await self.cache.set(key, result, TTLClass.API_RESPONSE)
        return result

    async def _fetch_page(self, url: str) -> str:
        result = await fetch_text(url, timeout=self._page_timeout, client=self._page_client)
        if not result.ok:
            raise PageFetchError(url, result.error or "resposta vazia", result.status_code or None)
        return result.text

    async def _run_analysis(self, url: str) -> AnalysisResult:
        start = time.perf_counter()

        try:
            html = await self._fetch_page(url)
        except PageFetchError as e:
            logger.warning(f"⚠️ [Pipeline] Página indisponível, usando info básica: {e}")
            return AnalysisResult(
                url=url,
                page_info=self._page_schema(basic_page_info(url)),
                analysis_time_ms=(time.perf_counter() - start) * 1000,
                degraded=True,
                degraded_reason=e.reason,
            )

        page_info = extract_page_info(html, url)
        identifiers, methods = self.extractor.extract_with_methods(html)
        logger.info(f"🔍 [Pipeline] {url}: {len(identifiers)} IDs encontrados via {methods}")

        groups: List[List[DomainCandidate]] = []
        incomplete: List[str] = []
        for pub_id in identifiers:
            try:
                discovery = await self.discover_domains(pub_id)
            except Exception as e:
                logger.error(f"❌ [Pipeline] Discovery falhou para {pub_id}: {type(e).__name__}: {e}")
                incomplete.append(pub_id)
                continue
            if discovery.degraded:
                incomplete.append(pub_id)
            groups.append([info.to_candidate() for info in discovery.domains])

        own_domain = canonical_domain(url)
        merged = [c for c in merge_candidates(groups) if c.domain != own_domain]

        if incomplete:
            logger.warning(
                f"⚠️ [Pipeline] {url}: domínios relacionados incompletos, "
                f"discovery degradado para {incomplete}"
            )

        return AnalysisResult(
            url=url,
            identifiers=identifiers,
            domains=[DomainInfo.from_candidate(c) for c in merged],
            page_info=self._page_schema(page_info),
            detection_methods=methods,
            analysis_time_ms=(time.perf_counter() - start) * 1000,
            degraded=bool(incomplete),
            degraded_reason=REASON_DISCOVERY_DEGRADED if incomplete else None,
        )

    @staticmethod
    def _page_schema(info: PageInfo) -> PageInfoSchema:
        return PageInfoSchema(**info.to_dict())

    # ------------------------------------------------------------------
    # Diagnóstico
    # ------------------------------------------------------------------

    async def test_provider_configuration(self) -> ProviderTestResult:
        """Verifica credenciais e faz uma busca mínima de teste (sem cache)."""
        details = self.gateway.credentials_summary()

        if not self.gateway.is_configured:
            return ProviderTestResult(
                success=False,
                error="GOOGLE_API_KEY e/ou GOOGLE_CX não configurados",
                details=details,
            )

        response = await self.gateway.execute(DIAGNOSTIC_QUERY, 1)
        details.update({
            "attempts": response.attempts,
            "status_code": response.status_code,
            "response_items": len(response.hits),
            "total_results": response.total_results,
            "search_time": response.search_time,
        })

        if response.success:
            logger.info(f"✅ [Pipeline] Provedor OK ({response.attempts} tentativa(s))")
        else:
            logger.warning(f"⚠️ [Pipeline] Teste do provedor falhou: {response.error}")
        return ProviderTestResult(success=response.success, error=response.error, details=details)

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def get_status(self) -> dict:
        return {
            "cache": self.cache.get_stats(),
            "search": self.gateway.get_status(),
            "verification": self.orchestrator.get_status(),
        }

    async def close(self):
        await self.cache.stop_sweeper()
        await self.gateway.close()


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def create_pipeline(
    cache: Optional[TTLCache] = None,
    start_sweeper: Optional[bool] = None,
    **kwargs,
) -> DiscoveryPipeline:
    """
    Monta o pipeline com componentes padrão (configs + settings).

    Args:
        start_sweeper: Inicia a varredura periódica do cache. None = inicia
            quando chamado dentro de um loop asyncio em execução; fora dele
            o chamador deve usar pipeline.cache.start_sweeper() depois.
            pipeline.close() encerra a varredura.
    """
    pipeline = DiscoveryPipeline(cache=cache, **kwargs)
    if start_sweeper is None:
        start_sweeper = _loop_running()
    if start_sweeper:
        pipeline.cache.start_sweeper()
    return pipeline
