"""Interface de base pour les modèles de langage avec vision."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal

ImageDetail = Literal["high", "low", "auto"]


@dataclass(frozen=True)
class VisionRequest:
    """Requête de complétion: deux prompts et deux images base64."""

    system_prompt: str
    user_prompt: str
    images: tuple[str, ...]
    detail: ImageDetail = "high"
    temperature: float = 0.8
    max_tokens: int = 4000
    json_response: bool = True
    seed: int | None = None
    user_tag: str | None = None


@dataclass
class VisionResult:
    """Texte brut renvoyé par le fournisseur et métriques d'usage."""

    text: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)


class VisionLLM(ABC):
    """Interface abstraite pour les modèles de langage capables de lire des images."""

    model: str = "unknown"

    @abstractmethod
    async def complete(self, request: VisionRequest) -> VisionResult:
        """
        Envoie la requête au fournisseur et retourne son texte brut.

        Raises:
            ProviderError: Échec réseau, statut non-2xx ou réponse vide.
        """
        ...
