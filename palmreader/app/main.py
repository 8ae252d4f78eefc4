"""
Application principale FastAPI.

Ce module assemble les composants du service de lecture des lignes de la main: middlewares,
gestionnaires d'erreurs, routes et métriques.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (CORS, request id, métriques, timing)
- Monter les routers (lecture, santé, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from palmreader.api.routes_health import router as health_router
from palmreader.api.routes_palm import router as palm_router
from palmreader.apigw.errors import register_error_handlers
from palmreader.app.metrics import PrometheusMiddleware, metrics_router
from palmreader.core.logging import setup_logging
from palmreader.core.settings import Settings, get_settings
from palmreader.middlewares.request_id import RequestIDMiddleware
from palmreader.middlewares.timing import TimingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Le pipeline n'est pas construit ici: il est résolu à la requête via `get_pipeline`.
    """
    settings = settings or get_settings()
    setup_logging(debug=settings.APP_DEBUG)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    # Ajouté en dernier: enveloppe les autres, y compris pour les réponses d'erreur.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(palm_router)
    app.include_router(health_router)
    app.include_router(metrics_router)
    return app


app = create_app()
