"""
Exceções do PubSpy.

Apenas erros de validação de entrada e falhas não recuperáveis do cache
chegam ao chamador; o restante é convertido em resultados neutros.
"""

from typing import Optional


class PubSpyError(Exception):
    """Erro base do PubSpy."""


class InvalidIdentifierError(PubSpyError, ValueError):
    """Publisher ID fornecido diretamente pelo chamador é inválido."""

    def __init__(self, identifier: object):
        self.identifier = identifier
        super().__init__(
            f"Publisher ID inválido: {identifier!r} "
            f"(formato esperado: ca-pub-xxxxxxxxxxxxxxxx)"
        )


class InvalidTargetError(PubSpyError, ValueError):
    """URL alvo fornecida pelo chamador não pode ser interpretada."""

    def __init__(self, target: object, reason: str = "URL inválida"):
        self.target = target
        self.reason = reason
        super().__init__(f"{reason}: {target!r}")


class ProviderUnavailableError(PubSpyError):
    """Provedor de busca sem credenciais, recusando a chave ou inacessível."""

    def __init__(self, reason: str, detail: Optional[str] = None, queries_executed: int = 0):
        self.reason = reason
        self.detail = detail
        self.queries_executed = queries_executed
        message = f"Provedor de busca indisponível: {reason}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class PageFetchError(PubSpyError):
    """Falha ao obter o conteúdo de uma página alvo."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Falha ao buscar {url}: {reason}")
