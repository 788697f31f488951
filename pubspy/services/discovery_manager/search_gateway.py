"""
Search Gateway - Execução de queries na Google Custom Search JSON API.

Controla:
- Cliente HTTP com connection pooling
- Rate limiting por token bucket
- Retry com backoff LINEAR (attempt * base) para 429 e erros transitórios
- Sem retry para 400/401/403 (recusa do provedor)
- Delay entre queries sucessivas e parada antecipada por volume
- Métricas de uso da API

Uma query que falha em todas as tentativas retorna lista vazia e a busca
segue para a próxima. Só a recusa do provedor (chave inválida, cota
esgotada) interrompe as queries restantes.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import httpx

from pubspy.configs.config_loader import get_section
from pubspy.core.config import settings
from pubspy.services.models import SearchHit
from .rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)

# A API retorna no máximo 10 itens por request
MAX_RESULTS_PER_REQUEST = 10

# Chave inválida, API desabilitada ou projeto sem permissão: repetir não adianta
PROVIDER_REJECTION_CODES = frozenset({400, 401, 403})

# Erros locais que valem igualmente para todas as queries seguintes
PROVIDER_BLOCKING_ERRORS = frozenset({"provider_not_configured", "daily_quota_exhausted"})


@dataclass
class SearchResponse:
    """Resultado detalhado de uma query."""
    query: str
    hits: List[SearchHit] = field(default_factory=list)
    total_results: str = "0"
    search_time: float = 0.0
    attempts: int = 0
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def provider_rejected(self) -> bool:
        """True quando o provedor recusou o acesso (não só esta query)."""
        if self.error is None:
            return False
        return self.error in PROVIDER_BLOCKING_ERRORS or self.status_code in PROVIDER_REJECTION_CODES


@dataclass
class SearchBatch:
    """Resultado agregado de search_many: hits e a resposta de cada query executada."""
    hits: List[SearchHit] = field(default_factory=list)
    responses: List[SearchResponse] = field(default_factory=list)
    aborted_reason: Optional[str] = None

    @property
    def executed(self) -> int:
        return len(self.responses)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.responses if not r.success)

    @property
    def all_failed(self) -> bool:
        return self.executed > 0 and self.failed == self.executed

    @property
    def errors(self) -> List[str]:
        seen: List[str] = []
        for response in self.responses:
            if response.error and response.error not in seen:
                seen.append(response.error)
        return seen


class SearchGateway:
    """
    Gateway para o provedor de busca.

    Valores não informados no construtor vêm de configs/discovery/search.json.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        cx: Optional[str] = None,
        endpoint: Optional[str] = None,
        request_timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        rate_limit_backoff: Optional[float] = None,
        error_backoff: Optional[float] = None,
        results_per_query: Optional[int] = None,
        inter_query_delay: Optional[float] = None,
        volume_threshold: Optional[int] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_key: Chave da API (default: settings.GOOGLE_API_KEY)
            cx: ID do mecanismo de busca (default: settings.GOOGLE_CX)
            endpoint: URL da API
            request_timeout: Timeout por request em segundos
            connect_timeout: Timeout de conexão em segundos
            max_attempts: Tentativas máximas por query
            rate_limit_backoff: Base do backoff linear para 429 (segundos)
            error_backoff: Base do backoff linear para demais erros (segundos)
            results_per_query: Resultados pedidos por query (máx 10)
            inter_query_delay: Pausa entre queries sucessivas (segundos)
            volume_threshold: Total de hits que interrompe search_many
            rate_limiter: Token bucket (default: criado a partir da config)
            client: Cliente httpx injetado (testes)
        """
        cfg = get_section("discovery/search", {})

        def pick(value, key, default):
            return value if value is not None else cfg.get(key, default)

        self._api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self._cx = cx if cx is not None else settings.GOOGLE_CX
        self._endpoint = endpoint or settings.GOOGLE_SEARCH_URL
        self._request_timeout = pick(request_timeout, "request_timeout", 8.0)
        self._connect_timeout = pick(connect_timeout, "connect_timeout", 5.0)
        self._max_attempts = pick(max_attempts, "max_attempts", 3)
        self._rate_limit_backoff = pick(rate_limit_backoff, "rate_limit_backoff", 2.0)
        self._error_backoff = pick(error_backoff, "error_backoff", 2.0)
        self._results_per_query = pick(results_per_query, "results_per_query", 5)
        self._inter_query_delay = pick(inter_query_delay, "inter_query_delay", 0.2)
        self._volume_threshold = pick(volume_threshold, "volume_threshold", 20)
        self._rate_limiter_timeout = cfg.get("rate_limiter_timeout", 10.0)

        self._rate_limiter = rate_limiter or TokenBucketRateLimiter(
            rate_per_second=cfg.get("rate_per_second", 5.0),
            max_burst=cfg.get("max_burst", 5),
            daily_quota=cfg.get("daily_quota", 0),
            name="google-cse",
        )

        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

        # Métricas
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_queries = 0
        self._rate_limited_requests = 0
        self._total_latency_ms = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._cx)

    @property
    def volume_threshold(self) -> int:
        return self._volume_threshold

    def credentials_summary(self) -> dict:
        """Presença e tamanho das credenciais (nunca os valores)."""
        return {
            "has_api_key": bool(self._api_key),
            "has_cx": bool(self._cx),
            "api_key_length": len(self._api_key or ""),
            "cx_length": len(self._cx or ""),
        }

    async def _get_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(
                        self._request_timeout,
                        connect=self._connect_timeout,
                    ),
                    limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
                    headers={"User-Agent": settings.PUBSPY_USER_AGENT},
                    http2=True,
                )
                self._owns_client = True
                logger.info("🌐 Search: Cliente HTTP criado (http2=True)")
        return self._client

    async def close(self):
        async with self._client_lock:
            if self._owns_client and self._client and not self._client.is_closed:
                await self._client.aclose()
                self._client = None
                logger.info("🌐 Search: Cliente HTTP fechado")

    async def search(self, query: str, num_results: Optional[int] = None) -> List[SearchHit]:
        """
        Executa uma query e retorna hits na ordem do provedor.

        Nunca levanta exceção: falha definitiva = lista vazia.
        """
        response = await self.execute(query, num_results)
        return response.hits

    async def execute(self, query: str, num_results: Optional[int] = None) -> SearchResponse:
        """Como search(), mas retorna metadados (tentativas, total, erro)."""
        result = SearchResponse(query=query)

        if not self.is_configured:
            logger.warning("⚠️ [Search] GOOGLE_API_KEY/GOOGLE_CX não configurados")
            result.error = "provider_not_configured"
            return result

        permit = await self._rate_limiter.acquire(timeout=self._rate_limiter_timeout)
        if not permit:
            logger.error(f"❌ [Search] Query não enviada ({permit.value}): {query[:50]}")
            result.error = permit.value
            return result

        num = max(1, min(num_results or self._results_per_query, MAX_RESULTS_PER_REQUEST))
        params = {"key": self._api_key, "cx": self._cx, "q": query, "num": num}
        client = await self._get_client()

        last_error: Optional[str] = None
        started = time.perf_counter()

        for attempt in range(1, self._max_attempts + 1):
            result.attempts = attempt
            delay = 0.0
            try:
                req_start = time.perf_counter()
                response = await client.get(
                    self._endpoint, params=params, timeout=self._request_timeout
                )
                self._total_requests += 1
                self._total_latency_ms += (time.perf_counter() - req_start) * 1000
                result.status_code = response.status_code

                if response.status_code == 429:
                    self._rate_limited_requests += 1
                    last_error = "rate_limit_429"
                    delay = attempt * self._rate_limit_backoff
                    logger.warning(
                        f"⚠️ [Search] Rate limit (429), tentativa {attempt}/{self._max_attempts}"
                    )
                elif response.status_code in PROVIDER_REJECTION_CODES:
                    last_error = f"http_{response.status_code}"
                    logger.error(
                        f"❌ [Search] Provedor recusou a requisição (HTTP {response.status_code}), "
                        f"sem novas tentativas"
                    )
                    break
                elif not 200 <= response.status_code < 300:
                    last_error = f"http_{response.status_code}"
                    delay = attempt * self._error_backoff
                    logger.warning(
                        f"⚠️ [Search] Erro HTTP {response.status_code}, "
                        f"tentativa {attempt}/{self._max_attempts}"
                    )
                else:
                    self._parse_success(response, result)
                    result.search_time = time.perf_counter() - started
                    self._successful_requests += 1
                    logger.info(f"✅ [Search] {len(result.hits)} resultados para: {query[:60]}")
                    return result

            except httpx.TimeoutException:
                last_error = "timeout"
                delay = attempt * self._error_backoff
                logger.warning(
                    f"⚠️ [Search] Timeout após {self._request_timeout}s, "
                    f"tentativa {attempt}/{self._max_attempts}"
                )
            except httpx.HTTPError as e:
                last_error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
                delay = attempt * self._error_backoff
                logger.warning(
                    f"⚠️ [Search] {last_error}, tentativa {attempt}/{self._max_attempts}"
                )
            except ValueError as e:
                # JSON inválido: resposta 2xx sem corpo utilizável
                last_error = f"invalid_json: {e}"
                logger.warning(f"⚠️ [Search] Resposta inválida para: {query[:60]}")
                break

            if attempt < self._max_attempts and delay > 0:
                await asyncio.sleep(delay)

        self._failed_queries += 1
        result.error = last_error or "unknown"
        result.search_time = time.perf_counter() - started
        logger.error(
            f"❌ [Search] Query falhou após {result.attempts} tentativas: "
            f"[{result.error}] {query[:60]}"
        )
        return result

    @staticmethod
    def _parse_success(response: httpx.Response, result: SearchResponse) -> None:
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("payload não é um objeto JSON")
        info = data.get("searchInformation") or {}
        result.total_results = str(info.get("totalResults", "0"))
        items = data.get("items")
        if not isinstance(items, list):
            return
        for item in items:
            if not isinstance(item, dict) or not item.get("link"):
                continue
            result.hits.append(SearchHit(
                title=item.get("title") or "",
                link=item["link"],
                snippet=item.get("snippet") or "",
                query=result.query,
            ))

    async def search_many(
        self,
        queries: Sequence[str],
        volume_threshold: Optional[int] = None,
    ) -> List[SearchHit]:
        """Como run_queries(), retornando apenas os hits agregados."""
        batch = await self.run_queries(queries, volume_threshold)
        return batch.hits

    async def run_queries(
        self,
        queries: Sequence[str],
        volume_threshold: Optional[int] = None,
    ) -> SearchBatch:
        """
        Executa queries estritamente em ordem, com pausa entre elas.

        Para assim que o total agregado de hits atinge o limiar, ou quando
        o provedor recusa o acesso (as queries restantes teriam o mesmo fim).
        """
        threshold = volume_threshold if volume_threshold is not None else self._volume_threshold
        batch = SearchBatch()

        for index, query in enumerate(queries):
            logger.info(f"🔎 [Search] Query {index + 1}/{len(queries)}: {query}")
            response = await self.execute(query)
            batch.responses.append(response)
            batch.hits.extend(response.hits)

            remaining = len(queries) - index - 1
            if response.provider_rejected:
                batch.aborted_reason = response.error
                if remaining:
                    logger.error(
                        f"❌ [Search] Provedor indisponível ({response.error}), "
                        f"abortando {remaining} queries restantes"
                    )
                break

            if len(batch.hits) >= threshold:
                logger.info(
                    f"[Search] Limiar de volume atingido ({len(batch.hits)} >= {threshold}), "
                    f"pulando {remaining} queries"
                )
                break

            if remaining and self._inter_query_delay > 0:
                await asyncio.sleep(self._inter_query_delay)

        logger.info(
            f"[Search] Busca concluída: {len(batch.hits)} hits brutos, "
            f"{batch.failed}/{batch.executed} queries com falha"
        )
        return batch

    def get_status(self) -> dict:
        avg_latency = 0.0
        if self._total_requests > 0:
            avg_latency = self._total_latency_ms / self._total_requests
        return {
            "configured": self.is_configured,
            "total_requests": self._total_requests,
            "successful_requests": self._successful_requests,
            "failed_queries": self._failed_queries,
            "rate_limited_requests": self._rate_limited_requests,
            "avg_latency_ms": round(avg_latency, 2),
            "rate_limiter": self._rate_limiter.get_status(),
            "config": {
                "request_timeout": self._request_timeout,
                "max_attempts": self._max_attempts,
                "rate_limit_backoff": self._rate_limit_backoff,
                "results_per_query": self._results_per_query,
                "inter_query_delay": self._inter_query_delay,
                "volume_threshold": self._volume_threshold,
            },
        }

    def reset_metrics(self):
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_queries = 0
        self._rate_limited_requests = 0
        self._total_latency_ms = 0.0
        self._rate_limiter.reset_metrics()
