"""
Testes do parse e da verificação via ads.txt.
"""

import httpx
import pytest

from conftest import OTHER_PUB_ID, PUB_ID, FakeClock, mock_client, site_handler
from pubspy.services.discovery_manager import DEFAULT_TTL_SECONDS, TTLCache, TTLClass
from pubspy.services.models import Confidence, VerificationMethod
from pubspy.services.verification import (
    AdsTxtVerifier,
    Relationship,
    parse_ads_txt,
    render_report,
)


def verifier_for(pages, **kwargs) -> AdsTxtVerifier:
    kwargs.setdefault("batch_pause", 0)
    return AdsTxtVerifier(client=mock_client(site_handler(pages)), **kwargs)


def ads_txt(body: str) -> httpx.Response:
    return httpx.Response(200, text=body, headers={"content-type": "text/plain"})


class TestParseAdsTxt:

    def test_malformed_line_does_not_abort_parse(self):
        content = "malformed-line\ngoogle.com, pub-1234567890123456, DIRECT"
        entries, errors = parse_ads_txt(content)

        assert len(entries) == 1
        assert entries[0].domain == "google.com"
        assert entries[0].publisher_id == "pub-1234567890123456"
        assert entries[0].relationship is Relationship.DIRECT
        assert len(errors) == 1
        assert errors[0].startswith("linha 1:")

    def test_comments_blank_lines_and_variables_skipped(self):
        content = (
            "# ads.txt do site\n"
            "\n"
            "contact=ads@site.com\n"
            "google.com, pub-1234567890123456, DIRECT, f08c47fec0942fa0 # conta principal\n"
            "   \n"
        )
        entries, errors = parse_ads_txt(content)

        assert errors == []
        assert len(entries) == 1
        assert entries[0].certification_authority == "f08c47fec0942fa0"

    def test_relationship_is_case_insensitive(self):
        entries, _ = parse_ads_txt("google.com, pub-1, reseller")
        assert entries[0].relationship is Relationship.RESELLER

    def test_invalid_relationship_and_empty_fields(self):
        content = "google.com, pub-1, PARTNER\ngoogle.com, , DIRECT\ngoogle.com, pub-2"
        entries, errors = parse_ads_txt(content)
        assert entries == []
        assert [e.split(":")[0] for e in errors] == ["linha 1", "linha 2", "linha 3"]

    def test_domain_is_lowercased(self):
        entries, _ = parse_ads_txt("Google.COM, pub-1, DIRECT")
        assert entries[0].domain == "google.com"


class TestAdsTxtVerifier:

    @pytest.mark.asyncio
    async def test_self_declared_direct_entry_verifies(self):
        verifier = verifier_for({
            "https://example.com/ads.txt": ads_txt("example.com, 1234567890123456, DIRECT"),
        })

        result = await verifier.verify("example.com", PUB_ID)

        assert result.verified is True
        assert result.method is VerificationMethod.AUTHORIZATION_DIRECT
        assert result.confidence is Confidence.STRONG

    @pytest.mark.asyncio
    async def test_reseller_entry_on_allowlist(self):
        verifier = verifier_for({
            "https://site.com/ads.txt": ads_txt("google.com, pub-1234567890123456, RESELLER"),
        })
        result = await verifier.verify("site.com", PUB_ID)
        assert result.method is VerificationMethod.AUTHORIZATION_RESELLER

    @pytest.mark.asyncio
    async def test_direct_preferred_over_reseller(self):
        verifier = verifier_for({
            "https://site.com/ads.txt": ads_txt(
                "google.com, pub-1234567890123456, RESELLER\n"
                "googlesyndication.com, ca-pub-1234567890123456, DIRECT\n"
            ),
        })
        result = await verifier.verify("site.com", PUB_ID)
        assert result.method is VerificationMethod.AUTHORIZATION_DIRECT

    @pytest.mark.asyncio
    async def test_unknown_ad_system_is_parsed_but_not_relevant(self):
        verifier = verifier_for({
            "https://site.com/ads.txt": ads_txt("otherads.com, pub-1234567890123456, DIRECT"),
        })

        analysis = await verifier.check("site.com", PUB_ID)
        result = await verifier.verify("site.com", PUB_ID)

        assert len(analysis.entries) == 1
        assert analysis.relevant_entries == []
        assert result.verified is False
        assert result.method is VerificationMethod.AUTHORIZATION_NO_MATCH

    @pytest.mark.asyncio
    async def test_self_declared_entries_can_be_disabled(self):
        verifier = verifier_for(
            {"https://example.com/ads.txt": ads_txt("example.com, 1234567890123456, DIRECT")},
            accept_self_declared=False,
        )
        result = await verifier.verify("example.com", PUB_ID)
        assert result.verified is False

    @pytest.mark.asyncio
    async def test_other_publisher_does_not_match(self):
        verifier = verifier_for({
            "https://site.com/ads.txt": ads_txt("google.com, pub-9999999999999999, DIRECT"),
        })
        result = await verifier.verify("site.com", PUB_ID)
        assert result.method is VerificationMethod.AUTHORIZATION_NO_MATCH

    @pytest.mark.asyncio
    async def test_missing_file_is_not_found(self):
        verifier = verifier_for({})
        result = await verifier.verify("site.com", PUB_ID)
        assert result.verified is False
        assert result.method is VerificationMethod.AUTHORIZATION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unreachable_host_is_error(self):
        def handler(request):
            raise httpx.ConnectError("dns failure")

        verifier = AdsTxtVerifier(client=mock_client(handler))
        result = await verifier.verify("site.com", PUB_ID)

        assert result.verified is False
        assert result.method is VerificationMethod.ERROR

    @pytest.mark.asyncio
    async def test_batch_check_covers_every_domain(self):
        verifier = verifier_for({
            "https://a.com/ads.txt": ads_txt("google.com, pub-1234567890123456, DIRECT"),
        }, batch_size=2)

        results = await verifier.batch_check(["a.com", "b.com", "c.com"], PUB_ID)

        assert set(results) == {"a.com", "b.com", "c.com"}
        assert results["a.com"].is_valid is True
        assert results["b.com"].found is False

    @pytest.mark.asyncio
    async def test_report_lists_relevant_entries_and_errors(self):
        verifier = verifier_for({
            "https://a.com/ads.txt": ads_txt("broken\ngoogle.com, pub-1234567890123456, DIRECT"),
        })
        report = render_report(await verifier.check("a.com", PUB_ID))

        assert "https://a.com/ads.txt" in report
        assert "google.com, pub-1234567890123456, DIRECT" in report
        assert "linha 1" in report


class CountingSite:
    """site_handler que conta os requests recebidos."""

    def __init__(self, pages):
        self.handler = site_handler(pages)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


class TestAdsTxtCache:

    ADS_TXT = "google.com, pub-1234567890123456, DIRECT\nsite.com, pub-9876543210987654, RESELLER"

    @pytest.mark.asyncio
    async def test_two_identifiers_on_same_domain_fetch_once(self):
        site = CountingSite({"https://site.com/ads.txt": ads_txt(self.ADS_TXT)})
        verifier = AdsTxtVerifier(client=mock_client(site), cache=TTLCache())

        first = await verifier.verify("site.com", PUB_ID)
        second = await verifier.verify("Site.com", OTHER_PUB_ID)

        assert len(site.requests) == 1
        assert first.method is VerificationMethod.AUTHORIZATION_DIRECT
        assert second.method is VerificationMethod.AUTHORIZATION_RESELLER

    @pytest.mark.asyncio
    async def test_missing_file_is_cached_for_full_ttl(self):
        clock = FakeClock()
        site = CountingSite({})
        verifier = AdsTxtVerifier(client=mock_client(site), cache=TTLCache(clock=clock))

        await verifier.verify("site.com", PUB_ID)
        clock.advance(DEFAULT_TTL_SECONDS[TTLClass.API_RESPONSE] + 1)
        result = await verifier.verify("site.com", PUB_ID)

        assert result.method is VerificationMethod.AUTHORIZATION_NOT_FOUND
        assert len(site.requests) == 1

    @pytest.mark.asyncio
    async def test_network_error_is_cached_briefly(self):
        clock = FakeClock()
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("dns failure")

        verifier = AdsTxtVerifier(client=mock_client(handler), cache=TTLCache(clock=clock))

        await verifier.verify("site.com", PUB_ID)
        await verifier.verify("site.com", PUB_ID)
        assert len(calls) == 1

        clock.advance(DEFAULT_TTL_SECONDS[TTLClass.API_RESPONSE] + 1)
        result = await verifier.verify("site.com", PUB_ID)

        assert result.method is VerificationMethod.ERROR
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_imported_fetch_entries_are_rebuilt(self):
        site = CountingSite({"https://site.com/ads.txt": ads_txt(self.ADS_TXT)})
        original = AdsTxtVerifier(client=mock_client(site), cache=TTLCache())
        await original.verify("site.com", PUB_ID)

        cache = TTLCache()
        cache.import_json(original._cache.export_json())
        restored = AdsTxtVerifier(client=mock_client(site), cache=cache)
        result = await restored.verify("site.com", OTHER_PUB_ID)

        assert result.method is VerificationMethod.AUTHORIZATION_RESELLER
        assert len(site.requests) == 1


class TestAdsTxtSizeLimit:

    @pytest.mark.asyncio
    async def test_oversized_file_is_truncated(self):
        body = "google.com, pub-1234567890123456, DIRECT\n" + "# " + "x" * 4096
        verifier = verifier_for({"https://site.com/ads.txt": ads_txt(body)}, max_bytes=512)

        analysis = await verifier.check("site.com", PUB_ID)

        assert analysis.found is True
        assert analysis.is_valid is True
        assert analysis.errors == ["arquivo truncado em 512 bytes"]

    def test_default_limit_comes_from_config(self):
        assert AdsTxtVerifier()._max_bytes == 1024 * 1024
