"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, seuils de validation, gateway LLM, politique de repli,
pipeline) et expose un singleton `container` utilisé par le reste de l'application.
"""

import structlog

from palmreader.core.settings import Settings, get_settings
from palmreader.domain.fallback import policy_from_name
from palmreader.domain.prompt_builder import PromptStyle
from palmreader.domain.reading_pipeline import GenerationParams, ReadingPipeline
from palmreader.domain.validator import ValidationThresholds
from palmreader.infra.llm.gateway import GatewayClient

log = structlog.get_logger(__name__)


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.thresholds = ValidationThresholds.from_json(
            self.settings.VALIDATION_MIN_LENGTHS_JSON
        )
        self.gateway = GatewayClient.from_settings(self.settings)
        self.policy = policy_from_name(self.settings.FALLBACK_POLICY, self.thresholds)
        self.pipeline = ReadingPipeline(
            self.gateway,
            self.policy,
            thresholds=self.thresholds,
            style=PromptStyle(self.settings.PROMPT_STYLE.strip().lower()),
            params=GenerationParams(
                detail=self.settings.LLM_IMAGE_DETAIL,
                temperature=self.settings.LLM_TEMPERATURE,
                max_tokens=self.settings.LLM_MAX_TOKENS,
            ),
        )
        if not self.gateway.providers:
            # Chaque requête échouera côté fournisseur: repli ou 500 selon la politique.
            log.warning("no_api_keys_configured", policy=self.policy.name)


container = Container()
