"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
- Exposer la liste ordonnée des clés OpenAI utilisées par le round robin du gateway
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )
    APP_NAME: str = "palmreader"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = False

    CORS_ORIGINS: list[str] = ["*"]

    # Fournisseur LLM (plusieurs clés possibles pour répartir la charge)
    OPENAI_API_KEY: str | None = None
    OPENAI_API_KEY_2: str | None = None
    OPENAI_API_KEY_3: str | None = None
    OPENAI_API_KEY_4: str | None = None
    OPENAI_API_KEY_5: str | None = None
    OPENAI_API_KEYS: str = ""  # CSV, ajouté après les clés numérotées
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_BASE_URL: str | None = None

    # Pipeline de lecture
    FALLBACK_POLICY: str = "self_healing"  # "self_healing" | "strict"
    PROMPT_STYLE: str = "detailed"  # "detailed" | "concise"
    LLM_IMAGE_DETAIL: str = "high"  # "high" | "low" | "auto"
    LLM_TEMPERATURE: float = 0.8
    LLM_MAX_TOKENS: int = 4000

    # Contrôle d'admission (best effort, local au process)
    LLM_TIMEOUT_S: float = 90.0
    LLM_MAX_CONCURRENT: int = 50
    THROTTLE_MIN_DELAY_S: float = 0.5
    THROTTLE_MAX_DELAY_S: float = 1.5
    LLM_ADMISSION_MAX_WAIT_S: float = 30.0

    # Seuils de validation, ex: '{"future_insights": 30}'
    VALIDATION_MIN_LENGTHS_JSON: str = "{}"

    def credentials(self) -> list[str]:
        """Retourne les clés API configurées, dédoublonnées et dans l'ordre."""
        candidates = [
            self.OPENAI_API_KEY,
            self.OPENAI_API_KEY_2,
            self.OPENAI_API_KEY_3,
            self.OPENAI_API_KEY_4,
            self.OPENAI_API_KEY_5,
            *self.OPENAI_API_KEYS.split(","),
        ]
        keys: list[str] = []
        for key in candidates:
            key = (key or "").strip()
            if key and key not in keys:
                keys.append(key)
        return keys


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
