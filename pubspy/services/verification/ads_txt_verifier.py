"""
Verificador ads.txt - caminho autoritativo de verificação.

Busca https://<domínio>/ads.txt, faz o parse linha a linha e procura uma
entrada de sistema de anúncio reconhecido cujo publisher ID seja o alvo.
Linhas malformadas viram erros por linha e não interrompem o parse.

Com um TTLCache, o fetch do arquivo (independente do publisher ID) fica em
cache por domínio na classe ads_txt_check; o match contra o ID é refeito a
cada chamada. Falhas de rede ficam só pelo TTL curto de api_response.
"""

import asyncio
import logging
from typing import AbstractSet, Dict, Iterable, List, Optional, Tuple

import httpx

from pubspy.configs.config_loader import get_section
from pubspy.core.constants import ADS_TXT_FILENAME, AUTHORIZED_AD_SYSTEM_DOMAINS
from pubspy.core.identifiers import strip_prefix
from pubspy.services.discovery_manager import TTLCache, TTLClass
from pubspy.services.fetcher import FetchResult, fetch_text
from pubspy.services.models import VerificationMethod, VerificationResult
from .models import AdsTxtAnalysis, AdsTxtEntry, Relationship

logger = logging.getLogger(__name__)

COMMENT_MARKER = "#"

# ads.txt reais ficam bem abaixo disso; o resto é lixo ou abuso
ADS_TXT_MAX_BYTES = 1024 * 1024


class AdsTxtLineError(ValueError):
    """Linha do ads.txt fora do formato esperado."""


def parse_ads_txt_line(line: str) -> AdsTxtEntry:
    """
    Formato: domínio, publisher_id, relação[, autoridade_certificadora]

    Raises:
        AdsTxtLineError: menos de 3 campos, campo vazio ou relação inválida
    """
    # Comentário no fim da linha
    line = line.split(COMMENT_MARKER, 1)[0]
    parts = [part.strip() for part in line.split(",")]

    if len(parts) < 3:
        raise AdsTxtLineError(f"formato inválido: esperado ao menos 3 campos, recebido {len(parts)}")

    domain, publisher_id, relationship = parts[0], parts[1], parts[2]
    if not domain or not publisher_id or not relationship:
        raise AdsTxtLineError("campo obrigatório vazio")

    try:
        rel = Relationship(relationship.upper())
    except ValueError:
        raise AdsTxtLineError(f"relação inválida: {relationship}")

    authority = parts[3] if len(parts) > 3 and parts[3] else None
    return AdsTxtEntry(
        domain=domain.lower(),
        publisher_id=publisher_id,
        relationship=rel,
        certification_authority=authority,
    )


def _is_variable_line(line: str) -> bool:
    # Variáveis do padrão IAB (contact=, subdomain=, OWNERDOMAIN=...)
    head = line.split(",", 1)[0]
    return "=" in head


def parse_ads_txt(content: str) -> Tuple[List[AdsTxtEntry], List[str]]:
    """
    Parse completo e puro de um ads.txt.

    Returns:
        (entradas válidas, erros por linha "linha N: motivo")
    """
    entries: List[AdsTxtEntry] = []
    errors: List[str] = []

    for number, raw in enumerate(content.splitlines(), start=1):
        line = raw.strip().lstrip("\ufeff")
        if not line or line.startswith(COMMENT_MARKER) or _is_variable_line(line):
            continue
        try:
            entries.append(parse_ads_txt_line(line))
        except AdsTxtLineError as e:
            errors.append(f"linha {number}: {e}")

    return entries, errors


def publisher_id_matches(entry_publisher_id: str, identifier: str) -> bool:
    """Aceita ca-pub-N, pub-N e N (comparação sem diferenciar caixa)."""
    candidate = entry_publisher_id.strip().lower()
    digits = strip_prefix(identifier)
    return candidate in (identifier.lower(), digits, f"pub-{digits}")


def find_match(
    entries: Iterable[AdsTxtEntry],
    identifier: str,
) -> Optional[Relationship]:
    """Relação da entrada que casa com o ID (DIRECT tem precedência)."""
    found: Optional[Relationship] = None
    for entry in entries:
        if not publisher_id_matches(entry.publisher_id, identifier):
            continue
        if entry.relationship is Relationship.DIRECT:
            return Relationship.DIRECT
        found = Relationship.RESELLER
    return found


class AdsTxtVerifier:
    """Verificação via ads.txt com timeout próprio."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        authorized_domains: AbstractSet[str] = AUTHORIZED_AD_SYSTEM_DOMAINS,
        batch_size: Optional[int] = None,
        batch_pause: Optional[float] = None,
        accept_self_declared: bool = True,
        cache: Optional[TTLCache] = None,
        max_bytes: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        cfg = get_section("verification/verifier", {})
        self._timeout = timeout if timeout is not None else cfg.get("ads_txt_timeout", 8.0)
        self._authorized_domains = frozenset(d.lower() for d in authorized_domains)
        self._batch_size = batch_size or cfg.get("batch_size", 5)
        self._batch_pause = batch_pause if batch_pause is not None else cfg.get("ads_txt_batch_pause", 1.0)
        self._accept_self_declared = accept_self_declared
        self._cache = cache
        self._max_bytes = max_bytes or cfg.get("ads_txt_max_bytes", ADS_TXT_MAX_BYTES)
        self._client = client

    @staticmethod
    def ads_txt_url(domain: str) -> str:
        return f"https://{domain}/{ADS_TXT_FILENAME}"

    def is_authorized_entry(self, entry: AdsTxtEntry, domain: Optional[str] = None) -> bool:
        """Sistema de anúncio reconhecido, ou o próprio domínio verificado."""
        if entry.domain in self._authorized_domains:
            return True
        return bool(self._accept_self_declared and domain and entry.domain == domain.lower())

    async def _download(self, url: str) -> FetchResult:
        return await fetch_text(url, timeout=self._timeout, client=self._client, max_bytes=self._max_bytes)

    async def fetch(self, domain: str) -> FetchResult:
        """Baixa o ads.txt do domínio, pelo cache quando houver um."""
        url = self.ads_txt_url(domain)
        if self._cache is None:
            return await self._download(url)

        key = TTLCache.generate_key(TTLClass.ADS_TXT_CHECK.value, domain)
        computed = False

        async def producer() -> FetchResult:
            nonlocal computed
            computed = True
            return await self._download(url)

        value = await self._cache.get_or_compute(key, producer, TTLClass.ADS_TXT_CHECK)
        # Entradas importadas via import_json voltam como dict
        result = value if isinstance(value, FetchResult) else FetchResult(**value)

        if computed and result.status_code == 0:
            # Sem resposta HTTP: não vale o TTL longo
            await self._cache.set(key, result, TTLClass.API_RESPONSE)
        return result

    async def check(self, domain: str, identifier: Optional[str] = None) -> AdsTxtAnalysis:
        """Busca e analisa o ads.txt de um domínio."""
        domain = domain.lower()
        analysis = AdsTxtAnalysis(domain=domain, url=self.ads_txt_url(domain))

        result = await self.fetch(domain)
        analysis.status_code = result.status_code
        if not result.ok:
            analysis.errors.append(result.error or f"http_{result.status_code}")
            logger.debug(f"[AdsTxt] {domain}: indisponível ({result.error})")
            return analysis

        analysis.found = True
        analysis.entries, analysis.errors = parse_ads_txt(result.text)
        if result.truncated:
            analysis.errors.append(f"arquivo truncado em {self._max_bytes} bytes")
        analysis.relevant_entries = [e for e in analysis.entries if self.is_authorized_entry(e, domain)]

        if identifier:
            analysis.matched_relationship = find_match(analysis.relevant_entries, identifier)
            analysis.is_valid = analysis.matched_relationship is not None

        logger.info(
            f"✅ [AdsTxt] {domain}: {len(analysis.entries)} entradas, "
            f"{len(analysis.relevant_entries)} relevantes, {len(analysis.errors)} erros"
        )
        return analysis

    async def verify(self, domain: str, identifier: str) -> VerificationResult:
        """Converte a análise em VerificationResult (nunca levanta)."""
        try:
            analysis = await self.check(domain, identifier)
        except Exception as e:
            logger.warning(f"⚠️ [AdsTxt] {domain}: erro inesperado {type(e).__name__}: {e}")
            return VerificationResult.not_verified(VerificationMethod.ERROR, str(e))

        if not analysis.found:
            detail = analysis.errors[0] if analysis.errors else None
            if analysis.status_code == 0:
                # Sem resposta HTTP (timeout, DNS, conexão)
                return VerificationResult.not_verified(VerificationMethod.ERROR, detail)
            return VerificationResult.not_verified(VerificationMethod.AUTHORIZATION_NOT_FOUND, detail)

        if analysis.matched_relationship is Relationship.DIRECT:
            logger.info(f"✅ [AdsTxt] {domain} verificado (DIRECT)")
            return VerificationResult(True, VerificationMethod.AUTHORIZATION_DIRECT)
        if analysis.matched_relationship is Relationship.RESELLER:
            logger.info(f"✅ [AdsTxt] {domain} verificado (RESELLER)")
            return VerificationResult(True, VerificationMethod.AUTHORIZATION_RESELLER)

        return VerificationResult.not_verified(VerificationMethod.AUTHORIZATION_NO_MATCH)

    async def batch_check(
        self,
        domains: List[str],
        identifier: Optional[str] = None,
    ) -> Dict[str, AdsTxtAnalysis]:
        """Checa vários domínios em lotes, com pausa entre lotes."""
        results: Dict[str, AdsTxtAnalysis] = {}

        for start in range(0, len(domains), self._batch_size):
            chunk = domains[start:start + self._batch_size]
            outcomes = await asyncio.gather(
                *(self.check(domain, identifier) for domain in chunk),
                return_exceptions=True,
            )
            for domain, outcome in zip(chunk, outcomes):
                if isinstance(outcome, BaseException):
                    failed = AdsTxtAnalysis(domain=domain, url=self.ads_txt_url(domain))
                    failed.errors.append(f"falha no lote: {outcome}")
                    results[domain] = failed
                else:
                    results[domain] = outcome

            if start + self._batch_size < len(domains) and self._batch_pause > 0:
                await asyncio.sleep(self._batch_pause)

        return results


def render_report(analysis: AdsTxtAnalysis) -> str:
    """Relatório legível de uma análise de ads.txt."""
    lines = [
        "=== ads.txt report ===",
        f"URL: {analysis.url}",
        f"Checked at: {analysis.last_checked.isoformat()}",
        f"Found: {'yes' if analysis.found else 'no'}",
    ]
    if analysis.found:
        lines.append(f"Total entries: {len(analysis.entries)}")
        lines.append(f"Relevant entries: {len(analysis.relevant_entries)}")
        if analysis.relevant_entries:
            lines.append("")
            lines.append("--- relevant entries ---")
            for entry in analysis.relevant_entries:
                lines.append(f"{entry.domain}, {entry.publisher_id}, {entry.relationship.value}")
    if analysis.errors:
        lines.append("")
        lines.append("--- errors ---")
        lines.extend(f"- {error}" for error in analysis.errors)
    return "\n".join(lines)
