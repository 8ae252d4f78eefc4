"""
Route de génération d'une lecture des lignes de la main.

Expose `POST /generate-palm-reading` (profil + deux photos de paumes) et le preflight
`OPTIONS` correspondant. Les erreurs de la politique stricte sont converties en 500 par les
gestionnaires de `palmreader.apigw.errors`.
"""

import time

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import ValidationError

from palmreader.api.deps import get_pipeline
from palmreader.api.schemas import PalmReadingPayload
from palmreader.apigw.errors import bad_request
from palmreader.app.metrics import PALM_READING_LATENCY, PALM_READINGS_TOTAL
from palmreader.core.http_constants import HTTP_OK
from palmreader.domain.errors import MissingInputError, ReadingError
from palmreader.domain.models import ReadingRequest, UserProfile
from palmreader.domain.reading_pipeline import ReadingPipeline

log = structlog.get_logger(__name__)

router = APIRouter(tags=["palm"])
pipeline_dep = Depends(get_pipeline)


def _build_request(payload: PalmReadingPayload) -> ReadingRequest:
    missing = payload.missing_fields()
    if missing:
        raise MissingInputError(
            "Missing required fields: user data and both palm images are required", missing
        )
    try:
        profile = UserProfile.model_validate(payload.userData)
        return ReadingRequest(
            profile=profile,
            left_image=payload.leftPalmImage,
            right_image=payload.rightPalmImage,
            credential_hint=payload.api_key_hint,
        )
    except ValidationError as err:
        fields = sorted({".".join(str(p) for p in e["loc"]) for e in err.errors()})
        raise bad_request("Invalid user data", details={"fields": fields}) from err


@router.post("/generate-palm-reading")
async def generate_palm_reading(
    payload: PalmReadingPayload, pipeline: ReadingPipeline = pipeline_dep
):
    """
    Génère une lecture complète à partir du profil et des deux photos.

    Retour: `reading`, `model`, `usage`, `basedOnActualImages`, `processingTime`, `fallback`,
    `policy` et, selon le cas, `fallbackReason`, `patchedFields`, `apiKeyIndex`.
    """
    request = _build_request(payload)
    policy = pipeline.policy.name
    start = time.perf_counter()
    log.info(
        "palm_reading_requested",
        user=request.profile.name,
        policy=policy,
        credential_hint=request.credential_hint,
    )
    try:
        outcome = await pipeline.generate(request)
    except ReadingError:
        PALM_READINGS_TOTAL.labels(outcome="error", policy=policy).inc()
        raise
    finally:
        PALM_READING_LATENCY.labels(policy=policy).observe(time.perf_counter() - start)

    label = "patched" if outcome.based_on_actual_images else "synthesized"
    PALM_READINGS_TOTAL.labels(
        outcome=label if outcome.fallback else "complete", policy=policy
    ).inc()
    log.info(
        "palm_reading_generated",
        model=outcome.model,
        fallback=outcome.fallback,
        processing_time_ms=outcome.processing_time_ms,
        total_tokens=outcome.usage.get("total_tokens", 0),
    )
    return outcome.to_response()


@router.options("/generate-palm-reading")
def generate_palm_reading_preflight():
    """Preflight CORS: réponse vide (les en-têtes sont ajoutés par `CORSMiddleware`)."""
    return Response(status_code=HTTP_OK)
