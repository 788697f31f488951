"""
Extrator de Publisher IDs a partir de markup/texto bruto.

Executa todas as estratégias registradas de forma independente e faz a união.
Sem I/O, determinístico; o pior caso é um conjunto vazio.
"""

import logging
from typing import List, Mapping, Optional, Set, Tuple

from .strategies import EXTRACTION_STRATEGIES, Strategy

logger = logging.getLogger(__name__)


class IdentifierExtractor:
    """Compõe estratégias de extração por união de conjuntos."""

    def __init__(self, strategies: Optional[Mapping[str, Strategy]] = None):
        """
        Args:
            strategies: Estratégias a usar. None = registro global
                (lido a cada chamada, então registros posteriores valem).
        """
        self._strategies = dict(strategies) if strategies is not None else None

    @property
    def strategies(self) -> Mapping[str, Strategy]:
        if self._strategies is not None:
            return self._strategies
        return EXTRACTION_STRATEGIES

    def extract(self, text: str) -> Set[str]:
        ids, _ = self._run(text)
        return ids

    def extract_with_methods(self, text: str) -> Tuple[List[str], List[str]]:
        """
        Returns:
            (IDs ordenados, nomes das estratégias que encontraram algo)
        """
        ids, methods = self._run(text)
        return sorted(ids), methods

    def _run(self, text: str) -> Tuple[Set[str], List[str]]:
        found: Set[str] = set()
        methods: List[str] = []
        if not text:
            return found, methods

        for name, strategy in self.strategies.items():
            try:
                hits = strategy(text)
            except Exception as e:
                # Estratégia com bug não derruba as demais
                logger.warning(f"[Extractor] Estratégia {name} falhou: {type(e).__name__}: {e}")
                continue
            if hits:
                methods.append(name)
                found |= hits

        if found:
            logger.debug(f"[Extractor] {len(found)} IDs via {methods}")
        return found, methods


# Instância singleton
identifier_extractor = IdentifierExtractor()


def extract_identifiers(text: str) -> Set[str]:
    """Função de conveniência."""
    return identifier_extractor.extract(text)
