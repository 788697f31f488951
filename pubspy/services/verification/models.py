"""
Modelos do módulo de verificação (ads.txt).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pubspy.services.models import utc_now


class Relationship(Enum):
    """Tipo de relação declarada no ads.txt."""
    DIRECT = "DIRECT"       # Publisher controla a conta diretamente
    RESELLER = "RESELLER"   # Conta de terceiro autorizado a revender


@dataclass(frozen=True)
class AdsTxtEntry:
    """Uma linha válida do ads.txt."""
    domain: str
    publisher_id: str
    relationship: Relationship
    certification_authority: Optional[str] = None


@dataclass
class AdsTxtAnalysis:
    """Resultado do fetch + parse do ads.txt de um domínio."""
    domain: str
    url: str
    found: bool = False
    status_code: int = 0
    entries: List[AdsTxtEntry] = field(default_factory=list)
    relevant_entries: List[AdsTxtEntry] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    is_valid: bool = False
    matched_relationship: Optional[Relationship] = None
    last_checked: datetime = field(default_factory=utc_now)
