"""Configuration de test pour pytest avec gestion des chemins.

Ajoute la racine du projet au sys.path (imports `palmreader...` et `scripts...`) et fournit les
fabriques communes: profil, gateway sans attente réelle, client HTTP avec pipeline injecté.
"""

import os
import sys

import pytest

# Ensure project root is on sys.path so that
# imports like `from palmreader...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from fastapi.testclient import TestClient  # noqa: E402

from palmreader.api.deps import get_pipeline  # noqa: E402
from palmreader.app.main import app  # noqa: E402
from palmreader.domain.models import UserProfile  # noqa: E402
from palmreader.domain.reading_pipeline import ReadingPipeline  # noqa: E402
from palmreader.infra.llm.gateway import GatewayClient  # noqa: E402


async def no_sleep(_delay: float) -> None:
    """Remplace `asyncio.sleep` dans le gateway: rend la main sans attendre."""
    import asyncio

    await asyncio.sleep(0)


@pytest.fixture
def profile() -> UserProfile:
    """Profil complet typique."""
    return UserProfile.model_validate(
        {
            "name": "Maria",
            "age": 34,
            "dateOfBirth": "1990-08-15",
            "timeOfBirth": "14:45",
            "zodiacSign": "Leo",
            "placeOfBirth": {"city": "Paris", "country": "France"},
        }
    )


@pytest.fixture
def make_gateway():
    """Fabrique de gateway dont les pauses d'admission ne dorment pas réellement."""

    def _make(providers, **kwargs) -> GatewayClient:
        kwargs.setdefault("sleep", no_sleep)
        return GatewayClient(list(providers), **kwargs)

    return _make


@pytest.fixture
def make_client():
    """Fabrique de TestClient dont le pipeline est remplacé; nettoie les overrides."""

    def _make(pipeline: ReadingPipeline) -> TestClient:
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()
