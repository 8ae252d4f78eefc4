"""
Client LLM vision basé sur l'API OpenAI (chat.completions).

- Un message système, un message utilisateur composé du texte et des deux images (data URI).
- Format de réponse JSON demandé au fournisseur.
- Aucun retry côté SDK (`max_retries=0`): l'échec remonte en `ProviderError`.
"""

from __future__ import annotations

from typing import Any

import openai
import structlog
from openai import AsyncOpenAI

from palmreader.domain.errors import ProviderError
from palmreader.infra.llm.base import VisionLLM, VisionRequest, VisionResult

log = structlog.get_logger(__name__)


def image_data_uri(image_b64: str, mime: str = "image/jpeg") -> str:
    """Construit l'URL data: attendue par l'API pour une image base64."""
    return f"data:{mime};base64,{image_b64}"


def build_messages(request: VisionRequest) -> list[dict[str, Any]]:
    """Construit les messages chat.completions (système + texte et images)."""
    content: list[dict[str, Any]] = [{"type": "text", "text": request.user_prompt}]
    for image in request.images:
        content.append(
            {
                "type": "image_url",
                "image_url": {"url": image_data_uri(image), "detail": request.detail},
            }
        )
    return [
        {"role": "system", "content": request.system_prompt},
        {"role": "user", "content": content},
    ]


class OpenAIVisionLLM(VisionLLM):
    """LLM vision basé sur OpenAI, une instance par clé API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        *,
        timeout: float = 90.0,
        base_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialise le client OpenAI (sans retry automatique)."""
        self.model = model
        self.client = client or AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    async def complete(self, request: VisionRequest) -> VisionResult:
        """Appelle chat.completions et convertit toute erreur SDK en `ProviderError`."""
        params: dict[str, Any] = {
            "model": self.model,
            "messages": build_messages(request),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.json_response:
            params["response_format"] = {"type": "json_object"}
        if request.seed is not None:
            params["seed"] = request.seed
        if request.user_tag:
            params["user"] = request.user_tag
        try:
            resp = await self.client.chat.completions.create(**params)
        except openai.APITimeoutError as exc:
            raise ProviderError("OpenAI request timed out") from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                f"OpenAI API error: {exc.status_code}", status=exc.status_code
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(f"OpenAI API error: {exc.__class__.__name__}") from exc

        choices = getattr(resp, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        if not content:
            raise ProviderError("OpenAI returned empty response")
        return VisionResult(
            text=str(content),
            model=str(getattr(resp, "model", None) or self.model),
            usage=self._extract_usage_dict(resp),
        )

    def _extract_usage_dict(self, resp: Any) -> dict[str, int]:
        """
        Extrait les infos d'usage depuis la réponse OpenAI.

        Toujours un dict.
        """
        usage = getattr(resp, "usage", None)
        if not usage:
            return {}
        return {
            "prompt_tokens": int(getattr(usage, "prompt_tokens", 0) or 0),
            "completion_tokens": int(getattr(usage, "completion_tokens", 0) or 0),
            "total_tokens": int(getattr(usage, "total_tokens", 0) or 0),
        }
