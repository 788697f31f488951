"""
Fixtures compartilhadas dos testes do PubSpy.

Nenhum teste acessa a rede: todo HTTP passa por httpx.MockTransport.
"""

from typing import Callable, Dict, Optional

import httpx
import pytest

from pubspy.configs import config_loader
from pubspy.services.discovery_manager import SearchGateway, TokenBucketRateLimiter

PUB_ID = "ca-pub-1234567890123456"
OTHER_PUB_ID = "ca-pub-9876543210987654"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def fresh_config():
    """Cada teste lê os JSONs de configuração do zero."""
    config_loader.reset_cache()
    yield
    config_loader.reset_cache()


class FakeClock:
    """Relógio controlável para testes de TTL."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def mock_client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def clone(response: httpx.Response) -> httpx.Response:
    """Cópia nova da resposta (a mesma instância não pode servir dois requests)."""
    return httpx.Response(
        response.status_code,
        headers=response.headers,
        content=response.content,
    )


def site_handler(pages: Dict[str, httpx.Response]) -> Handler:
    """Responde por URL exata (sem barra final); o resto vira 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url).rstrip("/")
        response = pages.get(url)
        if response is None:
            return httpx.Response(404, text="not found")
        return clone(response)

    return handler


def cse_item(link: str, title: str = "Resultado", snippet: str = "") -> dict:
    return {"title": title, "link": link, "snippet": snippet}


def cse_payload(links, total: str = "42") -> dict:
    return {
        "searchInformation": {"totalResults": total, "searchTime": 0.12},
        "items": [cse_item(link, title=f"Título {i}") for i, link in enumerate(links)],
    }


def make_gateway(
    handler: Handler,
    api_key: Optional[str] = "test-key",
    cx: Optional[str] = "test-cx",
    **kwargs,
) -> SearchGateway:
    """Gateway sem pausas reais e com rate limiter folgado."""
    kwargs.setdefault("rate_limit_backoff", 0)
    kwargs.setdefault("error_backoff", 0)
    kwargs.setdefault("inter_query_delay", 0)
    kwargs.setdefault(
        "rate_limiter",
        TokenBucketRateLimiter(rate_per_second=1000.0, max_burst=1000, name="test"),
    )
    return SearchGateway(
        api_key=api_key,
        cx=cx,
        client=mock_client(handler),
        **kwargs,
    )
