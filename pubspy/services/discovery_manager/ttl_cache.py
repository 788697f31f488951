"""
TTL Cache - Cache com tempo de vida por classe de operação.

Features:
- get_or_compute com TTL por classe (busca, ads.txt, análise de página...)
- Stale-on-error: se o produtor falha e existe entrada expirada, ela é servida
- Coalescência: chamadas concorrentes para a mesma chave compartilham um produtor
- Varredura periódica de entradas expiradas (task asyncio)
- Métricas de hit/miss
- Export/import JSON das entradas ainda válidas
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from pubspy.configs.config_loader import get_section

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any]]


class TTLClass(Enum):
    """Classes de TTL (cada uma ajustável de forma independente)."""
    ADSENSE_SEARCH = "adsense_search"            # ID -> domínios (busca)
    ADS_TXT_CHECK = "ads_txt_check"              # Verificação de ads.txt
    HTML_ANALYSIS = "html_analysis"              # Análise completa de página
    DOMAIN_VERIFICATION = "domain_verification"  # Verificação de domínio
    API_RESPONSE = "api_response"                # Respostas genéricas


# Relações de ads.txt mudam bem menos que conteúdo/busca
DEFAULT_TTL_SECONDS: Dict[TTLClass, float] = {
    TTLClass.ADSENSE_SEARCH: 30 * 60,
    TTLClass.ADS_TXT_CHECK: 24 * 60 * 60,
    TTLClass.HTML_ANALYSIS: 60 * 60,
    TTLClass.DOMAIN_VERIFICATION: 12 * 60 * 60,
    TTLClass.API_RESPONSE: 5 * 60,
}


@dataclass
class _CacheEntry:
    data: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


def _json_default(value: Any) -> Any:
    # Modelos pydantic / dataclasses / enums / datetimes
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "__dataclass_fields__"):
        return {k: getattr(value, k) for k in value.__dataclass_fields__}
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Tipo não serializável: {type(value).__name__}")


class TTLCache:
    """
    Mapa chave -> valor com TTL por classe.

    O mapa é protegido por um único asyncio.Lock; produtores rodam fora do lock.
    """

    def __init__(
        self,
        ttl_seconds: Optional[Mapping[Union[TTLClass, str], float]] = None,
        sweep_interval: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            ttl_seconds: Overrides de TTL por classe (default: configs/cache/ttl.json)
            sweep_interval: Intervalo da varredura periódica em segundos
            clock: Fonte de tempo (injetável em testes)
        """
        cfg = get_section("cache/ttl", {})
        self._ttls: Dict[TTLClass, float] = dict(DEFAULT_TTL_SECONDS)
        for name, seconds in (cfg.get("ttl_seconds") or {}).items():
            try:
                self._ttls[TTLClass(name)] = float(seconds)
            except ValueError:
                logger.warning(f"[Cache] Classe de TTL desconhecida na config: {name}")
        for ttl_class, seconds in (ttl_seconds or {}).items():
            self._ttls[TTLClass(ttl_class)] = float(seconds)

        self._sweep_interval = (
            sweep_interval if sweep_interval is not None else cfg.get("sweep_interval", 600)
        )
        self._clock = clock

        self._cache: Dict[str, _CacheEntry] = {}
        self._inflight: Dict[str, "asyncio.Task[Any]"] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional["asyncio.Task[None]"] = None

        # Métricas
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._coalesced = 0
        self._evictions = 0

    # ------------------------------------------------------------------
    # Chaves e TTL
    # ------------------------------------------------------------------

    @staticmethod
    def generate_key(prefix: str, *parts: Union[str, int]) -> str:
        """generate_key("adsense_search", "ca-pub-1") -> "adsense_search:ca-pub-1" """
        return ":".join([prefix, *(str(p) for p in parts)]).lower()

    def ttl_for(self, ttl_class: Union[TTLClass, str]) -> float:
        return self._ttls[TTLClass(ttl_class)]

    # ------------------------------------------------------------------
    # Operações principais
    # ------------------------------------------------------------------

    async def get_or_compute(
        self,
        key: str,
        producer: Producer,
        ttl_class: Union[TTLClass, str] = TTLClass.API_RESPONSE,
    ) -> Any:
        """
        Retorna o valor vivo da chave ou executa o produtor e armazena o resultado.

        Se o produtor falhar e ainda existir entrada expirada para a chave,
        o valor expirado é retornado. Sem entrada, a exceção é propagada.
        """
        ttl_class = TTLClass(ttl_class)

        async with self._lock:
            entry = self._cache.get(key)
            if entry is not None and not entry.is_expired(self._clock()):
                self._hits += 1
                logger.debug(f"🎯 [Cache] HIT: {key}")
                return entry.data

            task = self._inflight.get(key)
            if task is None:
                self._misses += 1
                logger.debug(f"🔍 [Cache] MISS: {key}")
                task = asyncio.ensure_future(self._produce(key, producer, ttl_class))
                self._inflight[key] = task
            else:
                self._coalesced += 1
                logger.debug(f"[Cache] Aguardando produtor em andamento: {key}")

        return await asyncio.shield(task)

    async def _produce(self, key: str, producer: Producer, ttl_class: TTLClass) -> Any:
        try:
            try:
                data = await producer()
            except Exception as e:
                async with self._lock:
                    stale = self._cache.get(key)
                    if stale is None:
                        raise
                    self._stale_hits += 1
                logger.warning(
                    f"⚠️ [Cache] Produtor falhou ({type(e).__name__}: {e}), "
                    f"servindo valor expirado: {key}"
                )
                return stale.data

            async with self._lock:
                self._cache[key] = _CacheEntry(
                    data=data, created_at=self._clock(), ttl=self._ttls[ttl_class]
                )
            logger.debug(f"💾 [Cache] SET: {key} (ttl={self._ttls[ttl_class]:.0f}s)")
            return data
        finally:
            self._inflight.pop(key, None)

    async def get(self, key: str) -> Optional[Any]:
        """Valor vivo da chave ou None."""
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None or entry.is_expired(self._clock()):
                self._misses += 1
                return None
            self._hits += 1
            return entry.data

    async def set(
        self,
        key: str,
        data: Any,
        ttl_class: Union[TTLClass, str] = TTLClass.API_RESPONSE,
    ) -> None:
        ttl = self.ttl_for(ttl_class)
        async with self._lock:
            self._cache[key] = _CacheEntry(data=data, created_at=self._clock(), ttl=ttl)
        logger.debug(f"💾 [Cache] SET manual: {key}")

    async def delete(self, key: str) -> bool:
        async with self._lock:
            removed = self._cache.pop(key, None) is not None
        if removed:
            logger.debug(f"🗑️ [Cache] Removido: {key}")
        return removed

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._cache)
            self._cache.clear()
            self.reset_metrics()
        logger.info(f"🧹 [Cache] Limpo: {count} entradas removidas")

    # ------------------------------------------------------------------
    # Varredura
    # ------------------------------------------------------------------

    async def cleanup(self) -> int:
        """Remove entradas expiradas. Retorna quantas foram removidas."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, e in self._cache.items() if e.is_expired(now)]
            for key in expired:
                del self._cache[key]
            self._evictions += len(expired)
        if expired:
            logger.info(f"🧹 [Cache] Cleanup: {len(expired)} entradas expiradas removidas")
        return len(expired)

    def start_sweeper(self, interval: Optional[float] = None) -> "asyncio.Task[None]":
        """Inicia a varredura periódica (idempotente). Requer loop em execução."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper
        period = interval if interval is not None else self._sweep_interval
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop(period))
        logger.info(f"[Cache] Varredura periódica iniciada (intervalo={period}s)")
        return self._sweeper

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("[Cache] Varredura periódica encerrada")

    async def _sweep_loop(self, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            try:
                await self.cleanup()
            except Exception as e:
                logger.error(f"❌ [Cache] Erro na varredura: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Warmup / persistência
    # ------------------------------------------------------------------

    async def warmup(
        self,
        items: Iterable[Tuple[str, Producer, Union[TTLClass, str]]],
    ) -> int:
        """Pré-carrega chaves. Retorna quantas foram carregadas com sucesso."""
        items = list(items)
        logger.info(f"🔥 [Cache] Warmup de {len(items)} chaves...")

        async def _load(key: str, producer: Producer, ttl_class) -> bool:
            try:
                await self.set(key, await producer(), ttl_class)
                return True
            except Exception as e:
                logger.warning(f"⚠️ [Cache] Warmup falhou para {key}: {e}")
                return False

        results = await asyncio.gather(*(_load(*item) for item in items))
        loaded = sum(1 for ok in results if ok)
        logger.info(f"🔥 [Cache] Warmup concluído: {loaded}/{len(items)}")
        return loaded

    def export_json(self) -> str:
        """Serializa entradas e métricas (valores viram JSON puro)."""
        payload = {
            "data": [
                {"key": k, "data": e.data, "created_at": e.created_at, "ttl": e.ttl}
                for k, e in self._cache.items()
            ],
            "stats": {"hits": self._hits, "misses": self._misses},
            "export_time": self._clock(),
        }
        return json.dumps(payload, default=_json_default, ensure_ascii=False)

    def import_json(self, raw: str) -> int:
        """Importa apenas entradas ainda válidas. Retorna quantas foram importadas."""
        try:
            payload = json.loads(raw)
            rows = payload.get("data", [])
        except (ValueError, AttributeError) as e:
            logger.error(f"❌ [Cache] Import inválido: {e}")
            return 0

        now = self._clock()
        imported = 0
        for row in rows:
            try:
                entry = _CacheEntry(
                    data=row["data"],
                    created_at=float(row["created_at"]),
                    ttl=float(row["ttl"]),
                )
                key = row["key"]
            except (KeyError, TypeError, ValueError):
                continue
            if entry.is_expired(now):
                continue
            self._cache[key] = entry
            imported += 1

        stats = payload.get("stats") or {}
        self._hits = int(stats.get("hits", self._hits))
        self._misses = int(stats.get("misses", self._misses))
        logger.info(f"📥 [Cache] Import concluído: {imported} entradas válidas")
        return imported

    # ------------------------------------------------------------------
    # Métricas
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def get_stats(self) -> dict:
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0
        return {
            "entries": len(self._cache),
            "hits": self._hits,
            "misses": self._misses,
            "stale_hits": self._stale_hits,
            "coalesced": self._coalesced,
            "evictions": self._evictions,
            "hit_rate": f"{hit_rate:.1%}",
            "sweeper_running": self.sweeper_running,
            "ttl_seconds": {c.value: s for c, s in self._ttls.items()},
        }

    def reset_metrics(self):
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0
        self._coalesced = 0
        self._evictions = 0
