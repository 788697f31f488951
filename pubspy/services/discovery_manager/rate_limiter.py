"""
Limitador de queries do provedor de busca.

Duas travas independentes:
- token bucket: quantas queries PODEM SER INICIADAS por segundo
- cota diária: total de queries por dia UTC (a Custom Search API cobra
  por query e devolve 429 indefinidamente quando a cota acaba)
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _utc_day() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class Permit(Enum):
    """Resultado de um pedido de permissão."""
    GRANTED = "granted"
    TIMEOUT = "rate_limiter_timeout"
    QUOTA_EXHAUSTED = "daily_quota_exhausted"

    def __bool__(self) -> bool:
        return self is Permit.GRANTED


@dataclass
class LimiterCounters:
    granted: int = 0
    delayed: int = 0
    timeouts: int = 0
    quota_refusals: int = 0
    wait_ms: float = 0.0

    @property
    def avg_wait_ms(self) -> float:
        return self.wait_ms / self.delayed if self.delayed else 0.0


class TokenBucketRateLimiter:
    """
    Token bucket assíncrono com cota diária opcional.

    Args:
        rate_per_second: Reabastecimento contínuo do bucket
        max_burst: Capacidade do bucket (burst inicial)
        daily_quota: Máximo de queries por dia UTC (0 = sem limite)
        name: Identificação nos logs
        clock: Relógio monotônico (injetável em testes)
        day: Função que retorna o dia corrente (injetável em testes)
    """

    # Granularidade máxima da espera entre re-tentativas de reserva
    POLL_INTERVAL = 0.05

    def __init__(
        self,
        rate_per_second: float = 5.0,
        max_burst: int = 5,
        daily_quota: int = 0,
        name: str = "search",
        clock: Callable[[], float] = time.monotonic,
        day: Callable[[], str] = _utc_day,
    ):
        self.rate_per_second = rate_per_second
        self.max_burst = max_burst
        self.daily_quota = daily_quota
        self.name = name
        self._clock = clock
        self._day = day

        self._tokens = float(max_burst)
        self._stamp = clock()
        self._quota_day = day()
        self._used_today = 0
        self._lock = asyncio.Lock()
        self._counters = LimiterCounters()

    def _top_up(self) -> None:
        now = self._clock()
        self._tokens = min(self.max_burst, self._tokens + (now - self._stamp) * self.rate_per_second)
        self._stamp = now

        today = self._day()
        if today != self._quota_day:
            logger.info(f"🔄 [Limiter:{self.name}] Novo dia UTC, cota zerada ({self._used_today} usadas)")
            self._quota_day = today
            self._used_today = 0

    @property
    def quota_remaining(self) -> Optional[int]:
        if not self.daily_quota:
            return None
        return max(0, self.daily_quota - self._used_today)

    def _try_reserve(self) -> Optional[float]:
        """None = reservado; senão, segundos até haver um token."""
        self._top_up()
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            self._used_today += 1
            return None
        return (1.0 - self._tokens) / self.rate_per_second

    async def acquire(self, timeout: float = 10.0) -> Permit:
        """Espera por um token até ``timeout`` segundos."""
        started = self._clock()
        deadline = started + timeout
        waited = False

        while True:
            async with self._lock:
                if self.daily_quota and self.quota_remaining == 0:
                    self._top_up()
                if self.daily_quota and self.quota_remaining == 0:
                    self._counters.quota_refusals += 1
                    logger.warning(f"⚠️ [Limiter:{self.name}] Cota diária esgotada ({self.daily_quota})")
                    return Permit.QUOTA_EXHAUSTED

                wait = self._try_reserve()
                if wait is None:
                    self._counters.granted += 1
                    if waited:
                        self._counters.delayed += 1
                        self._counters.wait_ms += (self._clock() - started) * 1000
                    return Permit.GRANTED

            remaining = deadline - self._clock()
            if remaining <= 0:
                self._counters.timeouts += 1
                logger.warning(f"⏰ [Limiter:{self.name}] Timeout de {timeout:.1f}s aguardando token")
                return Permit.TIMEOUT

            waited = True
            await asyncio.sleep(min(wait, remaining, self.POLL_INTERVAL))

    @property
    def available_tokens(self) -> float:
        self._top_up()
        return self._tokens

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "tokens_available": round(self.available_tokens, 2),
            "rate_per_second": self.rate_per_second,
            "max_burst": self.max_burst,
            "daily_quota": self.daily_quota or None,
            "quota_used_today": self._used_today,
            "quota_remaining": self.quota_remaining,
            "granted": self._counters.granted,
            "delayed": self._counters.delayed,
            "timeouts": self._counters.timeouts,
            "quota_refusals": self._counters.quota_refusals,
            "avg_wait_ms": round(self._counters.avg_wait_ms, 2),
        }

    def reset_metrics(self):
        self._counters = LimiterCounters()
