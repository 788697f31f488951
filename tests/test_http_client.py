"""
Testes do fetch textual compartilhado (limite de corpo e classificação de erros).
"""

import httpx
import pytest

from conftest import mock_client, site_handler
from pubspy.services.fetcher import fetch_text
from pubspy.services.fetcher.http_client import MAX_BODY_BYTES


class TestFetchText:

    @pytest.mark.asyncio
    async def test_small_body_is_read_whole(self):
        client = mock_client(site_handler({"https://site.com": httpx.Response(200, text="olá mundo")}))

        result = await fetch_text("https://site.com", client=client)

        assert result.ok
        assert result.text == "olá mundo"
        assert result.truncated is False

    @pytest.mark.asyncio
    async def test_body_over_limit_is_truncated(self):
        client = mock_client(site_handler({"https://big.com": httpx.Response(200, content=b"a" * 2048)}))

        result = await fetch_text("https://big.com", client=client, max_bytes=1000)

        assert result.ok
        assert result.truncated is True
        assert len(result.text) == 1000

    @pytest.mark.asyncio
    async def test_body_at_limit_is_not_truncated(self):
        client = mock_client(site_handler({"https://site.com": httpx.Response(200, content=b"a" * 1000)}))

        result = await fetch_text("https://site.com", client=client, max_bytes=1000)

        assert result.truncated is False
        assert len(result.text) == 1000

    @pytest.mark.asyncio
    async def test_non_success_status_is_an_error(self):
        client = mock_client(site_handler({}))

        result = await fetch_text("https://site.com/ads.txt", client=client)

        assert not result.ok
        assert result.status_code == 404
        assert result.error == "http_404"
        assert result.text == ""

    @pytest.mark.asyncio
    async def test_connect_error_is_classified(self):
        def handler(request):
            raise httpx.ConnectError("dns failure")

        result = await fetch_text("https://site.com", client=mock_client(handler))

        assert result.status_code == 0
        assert result.error == "connect_error"

    @pytest.mark.asyncio
    async def test_timeout_is_classified(self):
        def handler(request):
            raise httpx.ReadTimeout("slow")

        result = await fetch_text("https://site.com", client=mock_client(handler))

        assert result.error == "timeout"

    @pytest.mark.asyncio
    async def test_unknown_charset_falls_back_to_utf8(self):
        response = httpx.Response(
            200,
            content="ação".encode("utf-8"),
            headers={"content-type": "text/html; charset=x-desconhecido"},
        )
        client = mock_client(site_handler({"https://site.com": response}))

        result = await fetch_text("https://site.com", client=client)

        assert result.text == "ação"

    def test_page_limit_is_five_megabytes(self):
        assert MAX_BODY_BYTES == 5 * 1024 * 1024
