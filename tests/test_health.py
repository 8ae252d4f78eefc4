"""Tests pour les endpoints de santé et de métriques."""

from palmreader.core.http_constants import HTTP_OK
from palmreader.domain.fallback import StrictPolicy
from palmreader.domain.reading_pipeline import ReadingPipeline
from tests.fakes import FakeVisionLLM

MAX_CONCURRENT = 7


def test_health_reports_policy_and_gateway(make_gateway, make_client):
    """L'état de santé expose la politique active et l'état du gateway."""
    gateway = make_gateway([FakeVisionLLM()], max_concurrent=MAX_CONCURRENT)
    client = make_client(ReadingPipeline(gateway, StrictPolicy()))
    r = client.get("/health")
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["status"] == "ok"
    assert body["policy"] == "strict"
    assert body["model"] == "fake-vision"
    assert body["gateway"]["credentials"] == 1
    assert body["gateway"]["max_concurrent"] == MAX_CONCURRENT
    assert body["gateway"]["in_flight"] == 0


def test_health_is_degraded_without_credentials(make_gateway, make_client):
    """Sans clé API, le service répond mais se déclare dégradé."""
    client = make_client(ReadingPipeline(make_gateway([])))
    body = client.get("/health").json()
    assert body["status"] == "degraded"
    assert body["policy"] == "self_healing"


def test_metrics_exposes_reading_counters(make_gateway, make_client):
    """Les compteurs de lecture apparaissent dans l'exposition Prometheus."""
    client = make_client(ReadingPipeline(make_gateway([FakeVisionLLM()])))
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == HTTP_OK
    assert "http_requests_total" in r.text
    assert "palm_readings_total" in r.text
    assert "llm_inflight_calls" in r.text
