"""
Gateway vers le fournisseur LLM: contrôle d'admission et répartition des clés API.

Le `GatewayClient` appartient au process et remplace de simples compteurs globaux:
- un compteur d'appels en vol, borné par un plafond; au-delà, l'appelant attend par petites pauses
  aléatoires (ce n'est pas une file: aucun ordre ni garantie de service);
- un index de round robin sur les clés API configurées.

L'état est local au process, non durable, et repart de zéro au redémarrage. Il n'est pas partagé
entre instances. Les lectures/écritures du compteur se font sans `await` intermédiaire, ce qui
suffit dans la boucle asyncio mono-thread.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog

from palmreader.app.metrics import LLM_CALLS_TOTAL, LLM_INFLIGHT, LLM_THROTTLE_WAITS
from palmreader.domain.errors import ProviderError
from palmreader.infra.llm.base import VisionLLM, VisionRequest, VisionResult
from palmreader.infra.llm.openai_client import OpenAIVisionLLM

log = structlog.get_logger(__name__)

LARGE_IMAGE_KB = 1000


def image_size_kb(image_b64: str) -> int:
    """Taille décodée approximative d'une image base64, en Ko."""
    return round(len(image_b64) * 3 / 4 / 1024)


class GatewayClient:
    """Client unique du process pour tous les appels au fournisseur LLM."""

    def __init__(
        self,
        providers: list[VisionLLM],
        *,
        max_concurrent: int = 50,
        timeout_s: float = 90.0,
        min_delay_s: float = 0.5,
        max_delay_s: float = 1.5,
        admission_max_wait_s: float = 30.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialise le gateway avec un fournisseur par clé API."""
        self.providers = list(providers)
        self.max_concurrent = max(1, max_concurrent)
        self.timeout_s = timeout_s
        self.min_delay_s = min_delay_s
        self.max_delay_s = max(max_delay_s, min_delay_s)
        self.admission_max_wait_s = admission_max_wait_s
        self._sleep = sleep
        self.in_flight = 0
        self.peak_in_flight = 0
        self.throttled = 0
        self._next_index = 0
        self.credential_usage: dict[int, int] = {}

    @classmethod
    def from_settings(cls, settings) -> GatewayClient:
        """Construit le gateway à partir des settings (une instance OpenAI par clé)."""
        providers: list[VisionLLM] = [
            OpenAIVisionLLM(
                key,
                settings.OPENAI_MODEL,
                timeout=settings.LLM_TIMEOUT_S,
                base_url=settings.OPENAI_BASE_URL,
            )
            for key in settings.credentials()
        ]
        log.info("llm_gateway_configured", credentials=len(providers), model=settings.OPENAI_MODEL)
        return cls(
            providers,
            max_concurrent=settings.LLM_MAX_CONCURRENT,
            timeout_s=settings.LLM_TIMEOUT_S,
            min_delay_s=settings.THROTTLE_MIN_DELAY_S,
            max_delay_s=settings.THROTTLE_MAX_DELAY_S,
            admission_max_wait_s=settings.LLM_ADMISSION_MAX_WAIT_S,
        )

    @property
    def model(self) -> str:
        """Nom du modèle du premier fournisseur configuré."""
        return self.providers[0].model if self.providers else "unconfigured"

    @asynccontextmanager
    async def acquire_slot(self) -> AsyncIterator[None]:
        """
        Réserve une place parmi les appels en vol, libérée quoi qu'il arrive.

        Raises:
            ProviderError: Si l'attente d'admission dépasse `admission_max_wait_s`.
        """
        waited = 0.0
        while self.in_flight >= self.max_concurrent:
            if waited >= self.admission_max_wait_s:
                raise ProviderError(
                    f"LLM admission timed out after {waited:.1f}s "
                    f"({self.in_flight}/{self.max_concurrent} in flight)"
                )
            delay = random.uniform(self.min_delay_s, self.max_delay_s)
            self.throttled += 1
            LLM_THROTTLE_WAITS.inc()
            log.info(
                "llm_throttled",
                in_flight=self.in_flight,
                max_concurrent=self.max_concurrent,
                delay_s=round(delay, 3),
            )
            await self._sleep(delay)
            waited += delay
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        LLM_INFLIGHT.set(self.in_flight)
        try:
            yield
        finally:
            self.in_flight -= 1
            LLM_INFLIGHT.set(self.in_flight)

    def next_credential(self, hint: int | None = None) -> tuple[int, VisionLLM]:
        """
        Choisit la clé API suivante (round robin), ou celle indiquée par `hint` si elle existe.

        Raises:
            ProviderError: Si aucune clé n'est configurée.
        """
        if not self.providers:
            raise ProviderError("No API keys configured")
        if hint is not None and 0 <= hint < len(self.providers):
            index = hint
        else:
            index = self._next_index
            self._next_index = (index + 1) % len(self.providers)
        self.credential_usage[index] = self.credential_usage.get(index, 0) + 1
        return index, self.providers[index]

    async def complete(
        self, request: VisionRequest, hint: int | None = None
    ) -> tuple[VisionResult, int]:
        """
        Appelle le fournisseur sous contrôle d'admission et avec un timeout explicite.

        Returns:
            tuple[VisionResult, int]: Le résultat et l'index de la clé utilisée.

        Raises:
            ProviderError: Timeout, échec du fournisseur ou absence de clé.
        """
        async with self.acquire_slot():
            index, provider = self.next_credential(hint)
            for position, image in enumerate(request.images):
                size_kb = image_size_kb(image)
                if size_kb > LARGE_IMAGE_KB:
                    log.info("llm_large_image", position=position, size_kb=size_kb)
            try:
                result = await asyncio.wait_for(provider.complete(request), self.timeout_s)
            except TimeoutError as exc:
                LLM_CALLS_TOTAL.labels(outcome="timeout").inc()
                raise ProviderError(f"LLM call timed out after {self.timeout_s:g}s") from exc
            except ProviderError:
                LLM_CALLS_TOTAL.labels(outcome="error").inc()
                raise
        LLM_CALLS_TOTAL.labels(outcome="ok").inc()
        return result, index

    def stats(self) -> dict[str, Any]:
        """Instantané de l'état du gateway (pour /health)."""
        return {
            "credentials": len(self.providers),
            "in_flight": self.in_flight,
            "peak_in_flight": self.peak_in_flight,
            "max_concurrent": self.max_concurrent,
            "throttled": self.throttled,
            "credential_usage": dict(self.credential_usage),
        }
