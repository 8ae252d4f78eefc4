"""
Script de serveur de développement avec LLM factice.

Lance l'API avec un fournisseur vision simulé qui renvoie une lecture complète, pour tester le
client ou le harnais de charge localement sans clé API ni coût.
"""

import asyncio
import json
import os
import random

import uvicorn

from palmreader.api.deps import get_pipeline
from palmreader.app.main import app
from palmreader.core.container import container
from palmreader.domain.fallback import synthesize_reading
from palmreader.domain.models import UserProfile
from palmreader.domain.reading_pipeline import ReadingPipeline
from palmreader.infra.llm.base import VisionLLM, VisionRequest, VisionResult
from palmreader.infra.llm.gateway import GatewayClient


class CannedVisionLLM(VisionLLM):
    """Fournisseur factice: latence simulée et lecture synthétique complète."""

    model = "fake-vision"

    def __init__(self, min_latency_s: float = 0.2, max_latency_s: float = 1.0) -> None:
        self.min_latency_s = min_latency_s
        self.max_latency_s = max_latency_s

    async def complete(self, request: VisionRequest) -> VisionResult:
        await asyncio.sleep(random.uniform(self.min_latency_s, self.max_latency_s))
        reading = synthesize_reading(UserProfile(name=request.user_tag or "Friend"))
        return VisionResult(
            text=json.dumps(reading.to_json()),
            model=self.model,
            usage={"prompt_tokens": 1200, "completion_tokens": 1800, "total_tokens": 3000},
        )


def main():
    """
    Point d'entrée principal pour le serveur avec LLM factice.

    Le pipeline du conteneur est conservé (politique, seuils, style), seul le gateway change.
    """
    settings = container.settings
    gateway = GatewayClient(
        [CannedVisionLLM()],
        max_concurrent=settings.LLM_MAX_CONCURRENT,
        timeout_s=settings.LLM_TIMEOUT_S,
        min_delay_s=settings.THROTTLE_MIN_DELAY_S,
        max_delay_s=settings.THROTTLE_MAX_DELAY_S,
        admission_max_wait_s=settings.LLM_ADMISSION_MAX_WAIT_S,
    )
    base = container.pipeline
    pipeline = ReadingPipeline(
        gateway, base.policy, thresholds=base.thresholds, style=base.style, params=base.params
    )
    app.dependency_overrides[get_pipeline] = lambda: pipeline

    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port, reload=False)


if __name__ == "__main__":
    main()
