"""
Modelos de dados compartilhados entre discovery e verificação.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VerificationMethod(Enum):
    """Método que confirmou (ou não) a relação domínio ↔ publisher ID."""
    NONE = "none"                                       # Nenhum verificador confirmou
    AUTHORIZATION_DIRECT = "authorization-direct"       # ads.txt, relação DIRECT
    AUTHORIZATION_RESELLER = "authorization-reseller"   # ads.txt, relação RESELLER
    CONTENT_HEURISTIC = "content-heuristic"             # ID encontrado no HTML (fraco)
    ERROR = "error"                                     # Verificador falhou
    # Resultados negativos internos do ads.txt
    AUTHORIZATION_NOT_FOUND = "authorization-not-found"
    AUTHORIZATION_NO_MATCH = "authorization-no-match"

    @property
    def is_authoritative(self) -> bool:
        return self in (
            VerificationMethod.AUTHORIZATION_DIRECT,
            VerificationMethod.AUTHORIZATION_RESELLER,
        )


class Confidence(Enum):
    """Força da evidência de verificação."""
    NONE = "none"
    WEAK = "weak"       # Heurística de conteúdo: qualquer página pode citar um ID
    STRONG = "strong"   # ads.txt


class CandidateSource(Enum):
    SEARCH = "search"   # Resultado real do provedor de busca
    DEMO = "demo"       # Dados de demonstração (modo degradado)


@dataclass(frozen=True)
class SearchHit:
    """Resultado bruto do provedor de busca."""
    title: str
    link: str
    snippet: str = ""
    query: str = ""


@dataclass(frozen=True)
class VerificationResult:
    """Resultado transitório de um verificador para um candidato."""
    verified: bool
    method: VerificationMethod
    detail: Optional[str] = None

    @property
    def confidence(self) -> Confidence:
        if not self.verified:
            return Confidence.NONE
        if self.method.is_authoritative:
            return Confidence.STRONG
        return Confidence.WEAK

    @classmethod
    def not_verified(cls, method: VerificationMethod = VerificationMethod.NONE,
                     detail: Optional[str] = None) -> "VerificationResult":
        return cls(verified=False, method=method, detail=detail)


@dataclass
class DomainCandidate:
    """Domínio candidato a compartilhar o publisher ID."""
    domain: str
    title: str = ""
    snippet: str = ""
    origin_query: str = ""
    verified: bool = False
    verification_method: VerificationMethod = VerificationMethod.NONE
    last_checked: datetime = field(default_factory=utc_now)
    source: CandidateSource = CandidateSource.SEARCH
    source_identifiers: List[str] = field(default_factory=list)

    @property
    def confidence(self) -> Confidence:
        return VerificationResult(self.verified, self.verification_method).confidence

    def with_verification(self, result: VerificationResult) -> "DomainCandidate":
        """Retorna cópia com o resultado de verificação aplicado (uma única vez)."""
        return replace(
            self,
            verified=result.verified,
            verification_method=result.method,
            last_checked=utc_now(),
            source_identifiers=list(self.source_identifiers),
        )
