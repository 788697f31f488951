"""
Schemas Pydantic dos resultados de discovery, análise de página e diagnóstico.

Os modelos internos (dataclasses em pubspy.services.models) são convertidos
para estes schemas na borda do pipeline; é este formato que vai para o cache
e para quem consome os pontos de entrada.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from pubspy.services.models import CandidateSource, DomainCandidate, VerificationMethod


class DomainInfo(BaseModel):
    """
    Domínio candidato a compartilhar o publisher ID.

    Campos:
        domain: Hostname em minúsculas, sem "www."
        verified: Relação confirmada por algum verificador
        verification_method: Método que confirmou (ou "none"/"error")
        confidence: "strong" (ads.txt), "weak" (heurística) ou "none"
        source: "search" (resultado real) ou "demo" (demonstração)
    """
    domain: str = Field(..., description="Hostname do candidato (minúsculas, sem www.)")
    title: str = Field(default="", description="Título do resultado de busca")
    snippet: str = Field(default="", description="Trecho do resultado de busca")
    origin_query: str = Field(default="", description="Query que encontrou o domínio")
    verified: bool = Field(default=False, description="Relação domínio ↔ ID confirmada")
    verification_method: str = Field(
        default="none",
        description="authorization-direct, authorization-reseller, content-heuristic, error ou none",
    )
    confidence: Literal["none", "weak", "strong"] = Field(
        default="none",
        description="Força da evidência: ads.txt = strong, conteúdo da homepage = weak",
    )
    last_checked: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: Literal["search", "demo"] = Field(default="search", description="Origem do candidato")
    source_identifiers: List[str] = Field(
        default_factory=list,
        description="Publisher IDs que levaram a este domínio",
    )

    @classmethod
    def from_candidate(cls, candidate: DomainCandidate) -> "DomainInfo":
        return cls(
            domain=candidate.domain,
            title=candidate.title,
            snippet=candidate.snippet,
            origin_query=candidate.origin_query,
            verified=candidate.verified,
            verification_method=candidate.verification_method.value,
            confidence=candidate.confidence.value,
            last_checked=candidate.last_checked,
            source=candidate.source.value,
            source_identifiers=list(candidate.source_identifiers),
        )

    def to_candidate(self) -> DomainCandidate:
        return DomainCandidate(
            domain=self.domain,
            title=self.title,
            snippet=self.snippet,
            origin_query=self.origin_query,
            verified=self.verified,
            verification_method=VerificationMethod(self.verification_method),
            last_checked=self.last_checked,
            source=CandidateSource(self.source),
            source_identifiers=list(self.source_identifiers),
        )


class DiscoveryResult(BaseModel):
    """
    Resultado de discover_domains.

    Em modo degradado (provedor não configurado ou sem candidatos),
    ``domains`` fica vazio e os dados de demonstração vão separados em
    ``demo_domains``; nunca se misturam com achados reais.
    """
    identifier: str = Field(..., description="Publisher ID normalizado (ca-pub-xxxxxxxxxxxxxxxx)")
    domains: List[DomainInfo] = Field(default_factory=list, description="Domínios encontrados via busca")
    demo_domains: List[DomainInfo] = Field(
        default_factory=list,
        description="Domínios de demonstração (apenas em modo degradado)",
    )
    total_results: int = Field(default=0, description="Quantidade de domínios em 'domains'")
    verified_count: int = Field(default=0, description="Quantidade de domínios verificados")
    source: Literal["search", "fallback"] = Field(default="search", description="Origem dos dados")
    degraded: bool = Field(default=False, description="True quando o resultado não vem de busca real")
    degraded_reason: Optional[str] = Field(default=None, description="Motivo do modo degradado")
    queries_executed: int = Field(default=0, description="Queries enviadas ao provedor")
    search_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "identifier": "ca-pub-1234567890123456",
                "domains": [
                    {
                        "domain": "exemplo.com.br",
                        "title": "Exemplo",
                        "verified": True,
                        "verification_method": "authorization-direct",
                        "confidence": "strong",
                        "source": "search",
                    }
                ],
                "demo_domains": [],
                "total_results": 1,
                "verified_count": 1,
                "source": "search",
                "degraded": False,
            }
        }
    )


class PageInfoSchema(BaseModel):
    """Informações básicas da página analisada."""
    title: str = Field(default="", description="Título da página")
    url: str = Field(..., description="URL analisada")
    domain: str = Field(default="", description="Domínio da URL")
    language: str = Field(default="unknown", description="Atributo lang do <html>")
    charset: str = Field(default="unknown", description="Charset declarado")
    description: str = Field(default="", description="Meta description")
    fetched: bool = Field(default=True, description="False quando a página não pôde ser baixada")


class AnalysisResult(BaseModel):
    """
    Resultado de analyze_target.

    Campos:
        identifiers: Publisher IDs encontrados na página
        domains: Domínios relacionados (merge de todos os IDs)
        detection_methods: Estratégias de extração que encontraram IDs
        degraded: True quando a página não pôde ser baixada ou o discovery
            de algum ID ficou degradado (domínios relacionados incompletos)
    """
    url: str = Field(..., description="URL normalizada analisada")
    identifiers: List[str] = Field(default_factory=list, description="Publisher IDs encontrados")
    domains: List[DomainInfo] = Field(default_factory=list, description="Domínios relacionados")
    page_info: PageInfoSchema
    detection_methods: List[str] = Field(default_factory=list, description="Estratégias com hits")
    analysis_time_ms: float = Field(default=0.0, description="Tempo total da análise (ms)")
    degraded: bool = Field(default=False, description="Página indisponível ou discovery degradado; análise parcial")
    degraded_reason: Optional[str] = Field(default=None)
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url": "https://exemplo.com.br",
                "identifiers": ["ca-pub-1234567890123456"],
                "domains": [],
                "page_info": {"title": "Exemplo", "url": "https://exemplo.com.br", "domain": "exemplo.com.br"},
                "detection_methods": ["script_tags", "page_source"],
                "analysis_time_ms": 1234.5,
                "degraded": False,
            }
        }
    )


class ProviderTestResult(BaseModel):
    """Diagnóstico da configuração do provedor de busca."""
    success: bool = Field(..., description="Requisição de teste bem sucedida")
    error: Optional[str] = Field(default=None, description="Erro encontrado, se houver")
    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="has_api_key, has_cx, tamanhos, tentativas, itens, total, tempo de busca",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "error": None,
                "details": {
                    "has_api_key": True,
                    "has_cx": True,
                    "api_key_length": 39,
                    "cx_length": 17,
                    "attempts": 1,
                    "response_items": 1,
                    "total_results": "42",
                    "search_time": 0.31,
                },
            }
        }
    )
