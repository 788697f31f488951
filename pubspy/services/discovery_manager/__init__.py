"""
Discovery Manager - Controle de infraestrutura do discovery.

Este módulo centraliza:
- Gateway do provedor de busca (retry, backoff linear, limiar de volume)
- Rate limiting por token bucket
- Cache com TTL por classe de operação

A lógica de negócio de discovery permanece em pubspy/services/discovery/
"""

from .search_gateway import (
    SearchBatch,
    SearchGateway,
    SearchResponse,
)
from .ttl_cache import (
    TTLCache,
    TTLClass,
    DEFAULT_TTL_SECONDS,
)
from .rate_limiter import (
    Permit,
    TokenBucketRateLimiter,
)

__all__ = [
    # Busca
    "SearchBatch",
    "SearchGateway",
    "SearchResponse",
    # Cache
    "TTLCache",
    "TTLClass",
    "DEFAULT_TTL_SECONDS",
    # Rate Limiter
    "Permit",
    "TokenBucketRateLimiter",
]
