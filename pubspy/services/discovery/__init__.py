"""
Módulo de Discovery

Responsável por encontrar domínios que compartilham um publisher ID
usando busca no Google Custom Search e verificação via ads.txt.

Infraestrutura em discovery_manager:
- SearchGateway: Rate limiting, retry, backoff linear
- TTLCache: Cache por classe de operação com stale-on-error
"""

from .query_planner import plan_queries
from .deduplicator import (
    canonical_domain,
    deduplicate,
    is_excluded_domain,
    merge_candidates,
)
from .pipeline import (
    DiscoveryPipeline,
    create_pipeline,
    normalize_target_url,
)

__all__ = [
    'plan_queries',
    'canonical_domain',
    'deduplicate',
    'is_excluded_domain',
    'merge_candidates',
    'DiscoveryPipeline',
    'create_pipeline',
    'normalize_target_url',
]
