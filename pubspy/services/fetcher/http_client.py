"""
Cliente HTTP compartilhado para fetch de páginas e ads.txt.

Cliente httpx global com connection pooling (lazy), criado sob lock.
fetch_text nunca propaga exceções: falhas viram FetchResult com ``error``.
O corpo é lido em streaming até um limite de bytes.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from pubspy.core.config import settings
from pubspy.core.constants import DEFAULT_HEADERS

logger = logging.getLogger(__name__)

MAX_CONNECTIONS = 100
DEFAULT_TIMEOUT = 8.0
# Limite de leitura do corpo (páginas); ads.txt usa limite próprio
MAX_BODY_BYTES = 5 * 1024 * 1024

_client: Optional[httpx.AsyncClient] = None
_client_lock = asyncio.Lock()


@dataclass
class FetchResult:
    """Resultado de um GET textual."""
    url: str
    status_code: int = 0
    text: str = ""
    error: Optional[str] = None
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300


def build_headers() -> dict:
    headers = dict(DEFAULT_HEADERS)
    headers["User-Agent"] = settings.PUBSPY_USER_AGENT
    return headers


async def get_http_client() -> httpx.AsyncClient:
    """Retorna cliente HTTP global com connection pooling."""
    global _client
    async with _client_lock:
        if _client is None or _client.is_closed:
            kwargs = {}
            if settings.PAGE_FETCH_PROXY_URL:
                kwargs["proxy"] = settings.PAGE_FETCH_PROXY_URL
            _client = httpx.AsyncClient(
                timeout=httpx.Timeout(DEFAULT_TIMEOUT),
                limits=httpx.Limits(
                    max_keepalive_connections=20,
                    max_connections=MAX_CONNECTIONS,
                    keepalive_expiry=30.0,
                ),
                headers=build_headers(),
                follow_redirects=True,
                http2=True,
                **kwargs,
            )
            logger.info(f"🌐 Fetch: Cliente HTTP criado (pool={MAX_CONNECTIONS}, http2=True)")
    return _client


async def close_http_client():
    """Fecha o cliente HTTP global (chamar no shutdown)."""
    global _client
    async with _client_lock:
        if _client and not _client.is_closed:
            await _client.aclose()
            _client = None
            logger.info("🌐 Fetch: Cliente HTTP fechado")


def _classify_error(error: Exception) -> str:
    if isinstance(error, httpx.TimeoutException):
        return "timeout"
    if isinstance(error, httpx.ConnectError):
        return "connect_error"
    if isinstance(error, httpx.TooManyRedirects):
        return "too_many_redirects"
    return f"{type(error).__name__}:{str(error)[:60]}"


async def _read_capped(response: httpx.Response, max_bytes: int) -> Tuple[bytes, bool]:
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > max_bytes:
            return bytes(body[:max_bytes]), True
    return bytes(body), False


def _decode(body: bytes, encoding: str) -> str:
    try:
        return body.decode(encoding, errors="replace")
    except LookupError:
        # charset desconhecido no Content-Type
        return body.decode("utf-8", errors="replace")


async def fetch_text(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
    max_bytes: int = MAX_BODY_BYTES,
) -> FetchResult:
    """
    GET textual com timeout próprio e corpo limitado.

    O corpo é lido em streaming; passando de ``max_bytes`` a leitura para e
    o texto contém só os primeiros ``max_bytes`` (``truncated=True``).

    Args:
        url: URL absoluta
        timeout: Timeout total da requisição em segundos
        client: Cliente injetado (testes); None = cliente global
        max_bytes: Tamanho máximo do corpo lido
    """
    http = client or await get_http_client()
    try:
        async with http.stream("GET", url, timeout=timeout, headers=build_headers()) as response:
            if not 200 <= response.status_code < 300:
                return FetchResult(
                    url=url,
                    status_code=response.status_code,
                    error=f"http_{response.status_code}",
                )
            body, truncated = await _read_capped(response, max_bytes)
            encoding = response.encoding or "utf-8"
    except httpx.HTTPError as e:
        reason = _classify_error(e)
        logger.debug(f"[Fetch] {url} falhou: {reason}")
        return FetchResult(url=url, error=reason)
    except Exception as e:
        reason = _classify_error(e)
        logger.warning(f"⚠️ [Fetch] Erro inesperado em {url}: {reason}")
        return FetchResult(url=url, error=reason)

    if truncated:
        logger.warning(f"⚠️ [Fetch] {url}: corpo maior que {max_bytes} bytes, truncado")
    return FetchResult(
        url=url,
        status_code=response.status_code,
        text=_decode(body, encoding),
        truncated=truncated,
    )
