"""
Verificação de domínios candidatos.

- ads.txt (autoritativo, confiança forte)
- conteúdo da homepage (heurística, confiança fraca)
- orquestração em lotes com isolamento de falhas
"""

from .models import AdsTxtAnalysis, AdsTxtEntry, Relationship
from .ads_txt_verifier import (
    AdsTxtVerifier,
    parse_ads_txt,
    render_report,
)
from .homepage_verifier import HomepageVerifier
from .orchestrator import VerificationOrchestrator

__all__ = [
    "AdsTxtAnalysis",
    "AdsTxtEntry",
    "Relationship",
    "AdsTxtVerifier",
    "parse_ads_txt",
    "render_report",
    "HomepageVerifier",
    "VerificationOrchestrator",
]
