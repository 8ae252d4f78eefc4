"""
Endpoint de santé pour vérifier la disponibilité de l'API et du gateway LLM.

Expose `/health` pour signaler l'état général, la politique de repli active et l'état du gateway.
"""

from fastapi import APIRouter, Depends

from palmreader.api.deps import get_pipeline
from palmreader.domain.reading_pipeline import ReadingPipeline

router = APIRouter(tags=["health"])
pipeline_dep = Depends(get_pipeline)


@router.get("/health")
def health(pipeline: ReadingPipeline = pipeline_dep):
    """Vérifie la disponibilité de l'API et résume l'état du gateway."""
    gateway = pipeline.gateway
    stats = gateway.stats()
    return {
        "status": "ok" if stats["credentials"] else "degraded",
        "policy": pipeline.policy.name,
        "model": gateway.model,
        "gateway": stats,
    }
