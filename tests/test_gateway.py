"""Tests du gateway LLM: contrôle d'admission, round robin des clés, timeout."""

from __future__ import annotations

import asyncio

import pytest

from palmreader.domain.errors import ProviderError
from palmreader.infra.llm.base import VisionRequest
from tests.fakes import FakeVisionLLM

# Constantes pour éviter les erreurs PLR2004 (Magic values)
THREE = 3
HINT = 2

REQUEST = VisionRequest(system_prompt="s", user_prompt="u", images=("QUJD", "REVG"))


def test_round_robin_and_hint(make_gateway) -> None:
    """Les clés tournent; un indice valide est respecté sans faire avancer le tour."""
    gateway = make_gateway([FakeVisionLLM() for _ in range(THREE)])
    order = [gateway.next_credential()[0] for _ in range(4)]
    assert order == [0, 1, 2, 0]
    assert gateway.next_credential(hint=HINT)[0] == HINT
    assert gateway.next_credential()[0] == 1
    assert gateway.next_credential(hint=99)[0] == 2
    assert gateway.stats()["credential_usage"] == {0: 2, 1: 2, 2: 3}


def test_no_credentials_is_a_provider_error(make_gateway) -> None:
    """Sans clé configurée, chaque appel échoue en `ProviderError`."""
    gateway = make_gateway([])
    with pytest.raises(ProviderError, match="No API keys configured"):
        gateway.next_credential()
    assert gateway.model == "unconfigured"


@pytest.mark.asyncio
async def test_complete_returns_result_and_index(make_gateway) -> None:
    """Le résultat est accompagné de l'index de la clé utilisée; la place est libérée."""
    providers = [FakeVisionLLM(['{"a": 1}']), FakeVisionLLM(['{"b": 2}'])]
    gateway = make_gateway(providers)
    first, index_a = await gateway.complete(REQUEST)
    second, index_b = await gateway.complete(REQUEST)
    assert (first.text, index_a) == ('{"a": 1}', 0)
    assert (second.text, index_b) == ('{"b": 2}', 1)
    assert gateway.in_flight == 0
    assert providers[0].requests == [REQUEST]


@pytest.mark.asyncio
async def test_timeout_maps_to_provider_error_and_releases_slot(make_gateway) -> None:
    """Un appel trop long devient une `ProviderError` et libère sa place."""
    gateway = make_gateway([FakeVisionLLM(delay_s=5)], timeout_s=0.05)
    with pytest.raises(ProviderError, match="timed out"):
        await gateway.complete(REQUEST)
    assert gateway.in_flight == 0


@pytest.mark.asyncio
async def test_provider_error_releases_slot(make_gateway) -> None:
    """La place est libérée même si le fournisseur échoue."""
    gateway = make_gateway([FakeVisionLLM([ProviderError("boom", status=500)])])
    with pytest.raises(ProviderError, match="boom"):
        await gateway.complete(REQUEST)
    assert gateway.in_flight == 0


@pytest.mark.asyncio
async def test_ceiling_throttles_until_a_slot_frees(make_gateway) -> None:
    """Au plafond, l'appelant attend puis passe quand une place se libère."""
    release = asyncio.Event()
    gateway = make_gateway([FakeVisionLLM(release=release)], max_concurrent=1)

    first = asyncio.create_task(gateway.complete(REQUEST))
    await asyncio.sleep(0)
    assert gateway.in_flight == 1

    second = asyncio.create_task(gateway.complete(REQUEST))
    for _ in range(5):
        await asyncio.sleep(0)
    assert gateway.throttled >= 1
    release.set()

    await asyncio.gather(first, second)
    assert gateway.peak_in_flight == 1
    assert gateway.in_flight == 0


@pytest.mark.asyncio
async def test_admission_wait_is_bounded(make_gateway) -> None:
    """L'attente d'admission est bornée: au-delà, `ProviderError`."""
    release = asyncio.Event()
    gateway = make_gateway(
        [FakeVisionLLM(release=release)], max_concurrent=1, admission_max_wait_s=2
    )
    holder = asyncio.create_task(gateway.complete(REQUEST))
    await asyncio.sleep(0)
    with pytest.raises(ProviderError, match="admission timed out"):
        await gateway.complete(REQUEST)
    release.set()
    await holder
    assert gateway.in_flight == 0


@pytest.mark.asyncio
async def test_slot_released_on_cancellation(make_gateway) -> None:
    """Une requête annulée rend sa place."""
    gateway = make_gateway([FakeVisionLLM(release=asyncio.Event())])
    task = asyncio.create_task(gateway.complete(REQUEST))
    await asyncio.sleep(0)
    assert gateway.in_flight == 1
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert gateway.in_flight == 0
