"""
Fakes pour les tests unitaires.

Ce module fournit un fournisseur vision factice, scriptable réponse par réponse, et un
constructeur de lecture complète rédigée "comme par le LLM" (textes distincts des textes de
remplissage de `palmreader.domain.fallback`).
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from palmreader.domain.models import LINE_KEYS, MOUNT_KEYS
from palmreader.infra.llm.base import VisionLLM, VisionRequest, VisionResult

FAKE_USAGE = {"prompt_tokens": 1500, "completion_tokens": 1700, "total_tokens": 3200}


def make_reading_dict(name: str = "Maria") -> dict[str, Any]:
    """Lecture complète et valide, au format du client."""
    return {
        "greeting": f"Welcome {name}, your hands tell a vivid story today.",
        "overallPersonality": f"{name} is curious, generous and quietly determined in all things.",
        "lines": {
            key: {
                "name": f"The {key[:-4].title()} Line",
                "description": f"A deep, well-marked {key} crossing the palm.",
                "meaning": f"The {key} points to steady growth and resilience.",
                "personalizedInsight": f"{name}, your {key} favours patient, bold choices.",
            }
            for key in LINE_KEYS
        },
        "mounts": {
            key: {
                "name": f"Mount of {key.title()}",
                "prominence": "Prominent",
                "meaning": f"A raised mount of {key} shows confidence and drive.",
            }
            for key in MOUNT_KEYS
        },
        "specialMarkings": [
            "A small star under the ring finger",
            "A mystic cross between head and heart lines",
            "A clear triangle on the mount of Mercury",
            "A short sister line beside the life line",
        ],
        "handComparison": (
            "The left hand shows inherited calm while the right shows earned ambition."
        ),
        "futureInsights": (
            "A creative project gains momentum within the year. Travel brings an unexpected "
            "friendship that opens new doors."
        ),
        "personalizedAdvice": (
            f"{name}, trust the plans you have been sketching quietly. Share them with one person "
            "you respect and let their feedback sharpen your next step."
        ),
        "luckyElements": {
            "colors": ["Teal", "Amber", "Ivory"],
            "numbers": [4, 9, 22],
            "days": ["Tuesday", "Saturday"],
        },
    }


class FakeVisionLLM(VisionLLM):
    """
    Fournisseur vision factice pour les tests.

    Chaque appel consomme la réponse suivante de `responses` (texte brut ou exception à lever);
    la dernière est réutilisée. Sans réponse scriptée, renvoie une lecture complète.
    """

    def __init__(
        self,
        responses: list[str | Exception] | None = None,
        *,
        model: str = "fake-vision",
        delay_s: float = 0.0,
        usage: dict[str, int] | None = None,
        release: asyncio.Event | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.model = model
        self.delay_s = delay_s
        self.usage = dict(FAKE_USAGE if usage is None else usage)
        self.release = release
        self.requests: list[VisionRequest] = []

    async def complete(self, request: VisionRequest) -> VisionResult:
        self.requests.append(request)
        if self.release is not None:
            await self.release.wait()
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if not self.responses:
            item: str | Exception = json.dumps(make_reading_dict(request.user_tag or "Maria"))
        elif len(self.responses) > 1:
            item = self.responses.pop(0)
        else:
            item = self.responses[0]
        if isinstance(item, Exception):
            raise item
        return VisionResult(text=item, model=self.model, usage=dict(self.usage))
