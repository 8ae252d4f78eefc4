"""Orchestrateur de génération de lecture des lignes de la main.

Ce module enchaîne la construction des prompts, l'appel au LLM vision via le gateway, la
validation de la réponse puis, en cas d'échec, la politique de repli configurée.

Flux: prompts -> gateway -> validation -> (complète: lecture | échec: politique de repli)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from palmreader.app.metrics import (
    LLM_TOKENS_TOTAL,
    PALM_READING_FALLBACKS,
    PALM_READING_VALIDATION_ISSUES,
)
from palmreader.domain.errors import ErrorKind, ParseError, ProviderError
from palmreader.domain.fallback import FallbackPolicy, PolicyDecision, SelfHealingPolicy
from palmreader.domain.models import Reading, ReadingRequest
from palmreader.domain.prompt_builder import PromptStyle, build_prompts
from palmreader.domain.validator import ValidationThresholds, validate_reading_text
from palmreader.infra.llm.base import VisionRequest
from palmreader.infra.llm.gateway import GatewayClient

log = structlog.get_logger(__name__)

FALLBACK_MODEL = "fallback"


@dataclass(frozen=True)
class GenerationParams:
    """Paramètres de génération transmis au fournisseur."""

    detail: str = "high"
    temperature: float = 0.8
    max_tokens: int = 4000


@dataclass
class ReadingOutcome:
    """Résultat du pipeline pour une requête."""

    reading: Reading
    model: str
    usage: dict[str, int]
    based_on_actual_images: bool
    policy: str
    processing_time_ms: int
    fallback: bool = False
    fallback_reason: str | None = None
    patched_fields: list[str] = field(default_factory=list)
    credential_index: int | None = None
    issues: list[str] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        """Corps JSON de la réponse HTTP 200."""
        body: dict[str, Any] = {
            "reading": self.reading.to_json(),
            "model": self.model,
            "usage": self.usage or {"total_tokens": 0},
            "basedOnActualImages": self.based_on_actual_images,
            "fallback": self.fallback,
            "policy": self.policy,
            "processingTime": self.processing_time_ms,
        }
        if self.fallback_reason:
            body["fallbackReason"] = self.fallback_reason
        if self.patched_fields:
            body["patchedFields"] = self.patched_fields
        if self.credential_index is not None:
            body["apiKeyIndex"] = self.credential_index
        return body


class ReadingPipeline:
    """Pipeline linéaire, sans état entre deux requêtes (hors compteurs du gateway)."""

    def __init__(
        self,
        gateway: GatewayClient,
        policy: FallbackPolicy | None = None,
        *,
        thresholds: ValidationThresholds | None = None,
        style: PromptStyle = PromptStyle.DETAILED,
        params: GenerationParams | None = None,
    ) -> None:
        """Initialise le pipeline avec le gateway et la politique de repli."""
        self.gateway = gateway
        self.thresholds = thresholds or ValidationThresholds()
        self.policy = policy or SelfHealingPolicy(self.thresholds)
        self.style = PromptStyle(style)
        self.params = params or GenerationParams()

    def _vision_request(self, request: ReadingRequest) -> VisionRequest:
        prompts = build_prompts(request.profile, self.style)
        return VisionRequest(
            system_prompt=prompts.system,
            user_prompt=prompts.user,
            images=(request.left_image, request.right_image),
            detail=self.params.detail,  # type: ignore[arg-type]
            temperature=self.params.temperature,
            max_tokens=self.params.max_tokens,
            seed=int(time.time() * 1000) % 1000,
            user_tag=request.profile.name,
        )

    async def generate(self, request: ReadingRequest) -> ReadingOutcome:
        """
        Génère une lecture pour la requête.

        Raises:
            ReadingError: Uniquement si la politique stricte refuse le résultat.
        """
        start = time.perf_counter()
        profile = request.profile
        model = FALLBACK_MODEL
        usage: dict[str, int] = {}
        credential_index: int | None = None
        issues: list[str] = []

        try:
            result, credential_index = await self.gateway.complete(
                self._vision_request(request), hint=request.credential_hint
            )
            model, usage = result.model, result.usage
            if usage.get("total_tokens"):
                LLM_TOKENS_TOTAL.labels(model=model).inc(usage["total_tokens"])
            validation = validate_reading_text(result.text, self.thresholds)
            issues = validation.issues
            if validation.acceptable:
                decision = PolicyDecision(
                    reading=validation.reading,  # type: ignore[arg-type]
                    based_on_actual_images=True,
                )
            elif validation.error_kind is ErrorKind.PARSE_ERROR:
                log.warning(
                    "palm_reading_parse_error",
                    model=model,
                    error=issues[0] if issues else None,
                    raw_length=len(result.text),
                )
                decision = self.policy.on_error(
                    ParseError("Failed to parse provider response as JSON", raw=result.text),
                    profile,
                )
            else:
                PALM_READING_VALIDATION_ISSUES.inc(len(issues))
                log.warning("palm_reading_incomplete", model=model, issues=issues)
                decision = self.policy.on_incomplete(validation, profile)
        except ProviderError as exc:
            log.error(
                "palm_reading_provider_error",
                error=exc.message,
                provider_status=exc.status,
                credential_index=credential_index,
            )
            decision = self.policy.on_error(exc, profile)

        if decision.fallback:
            reason = (decision.reason or "unknown").split(":")[0]
            PALM_READING_FALLBACKS.labels(reason=reason).inc()
            if not decision.based_on_actual_images:
                model, usage = FALLBACK_MODEL, {"total_tokens": 0}

        return ReadingOutcome(
            reading=decision.reading,
            model=model,
            usage=usage,
            based_on_actual_images=decision.based_on_actual_images,
            policy=self.policy.name,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            fallback=decision.fallback,
            fallback_reason=decision.reason,
            patched_fields=decision.patched_fields,
            credential_index=credential_index,
            issues=issues,
        )
