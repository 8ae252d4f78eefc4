"""Tests des politiques de repli (stricte et auto-réparatrice)."""

from __future__ import annotations

import pytest

from palmreader.domain import fallback
from palmreader.domain.errors import (
    ErrorKind,
    IncompleteContentError,
    ParseError,
    ProviderError,
)
from palmreader.domain.fallback import (
    FILLER_ADVICE,
    FILLER_LINE,
    FILLER_LUCKY,
    FILLER_MOUNT,
    POLICY_SELF_HEALING,
    POLICY_STRICT,
    SelfHealingPolicy,
    StrictPolicy,
    patch_reading,
    policy_from_name,
    synthesize_reading,
)
from palmreader.domain.models import LINE_KEYS, MOUNT_KEYS, Reading, UserProfile
from palmreader.domain.validator import (
    ValidationThresholds,
    collect_issues,
    validate_reading_data,
)
from tests.fakes import make_reading_dict

STRICTER = ValidationThresholds(future_insights=400, personalized_advice=300, line_text=80)


@pytest.mark.parametrize("thresholds", [ValidationThresholds(), STRICTER])
@pytest.mark.parametrize("data", [{"name": "Alice"}, {"name": "Bo", "zodiacSign": "Pisces"}])
def test_synthesized_reading_always_validates(data: dict, thresholds) -> None:
    """La lecture synthétique satisfait l'invariant de complétude, quels que soient les seuils."""
    reading = synthesize_reading(UserProfile.model_validate(data), thresholds)
    assert collect_issues(reading.to_json(), thresholds) == []


@pytest.mark.parametrize(
    "error", [ProviderError("boom", status=503), ParseError("bad json", raw="{")]
)
def test_self_healing_on_error_synthesizes(error, profile: UserProfile) -> None:
    """Erreur fournisseur ou parsing: lecture synthétique, non basée sur les images."""
    decision = SelfHealingPolicy().on_error(error, profile)
    assert decision.fallback is True
    assert decision.based_on_actual_images is False
    assert decision.reason.startswith(error.kind.value)
    assert collect_issues(decision.reading.to_json()) == []
    assert "Leo" in decision.reading.overall_personality


def test_self_healing_patches_only_failing_fields(profile: UserProfile) -> None:
    """Les champs valides du LLM sont conservés; seuls les champs défaillants sont complétés."""
    data = make_reading_dict()
    original_heart = dict(data["lines"]["heartLine"])
    data["lines"]["lifeLine"]["meaning"] = "ok"
    del data["mounts"]["saturn"]
    data["personalizedAdvice"] = ""
    data["luckyElements"]["days"] = ["Monday"]

    decision = SelfHealingPolicy().on_incomplete(validate_reading_data(data), profile)
    reading = decision.reading.to_json()

    assert decision.fallback is True
    assert decision.based_on_actual_images is True
    assert decision.reason == ErrorKind.INCOMPLETE_CONTENT.value
    assert sorted(decision.patched_fields) == sorted(
        ["lines.lifeLine.meaning", "mounts.saturn", "personalizedAdvice", "luckyElements.days"]
    )
    assert reading["lines"]["heartLine"] == original_heart
    assert reading["lines"]["lifeLine"]["meaning"] == FILLER_LINE["meaning"]
    assert reading["lines"]["lifeLine"]["description"] == data["lines"]["lifeLine"]["description"]
    assert reading["mounts"]["saturn"]["meaning"] == FILLER_MOUNT["meaning"]
    assert reading["personalizedAdvice"] == FILLER_ADVICE
    assert reading["luckyElements"]["days"] == FILLER_LUCKY["days"]
    assert reading["luckyElements"]["colors"] == data["luckyElements"]["colors"]


def test_patch_drops_unexpected_keys_and_fills_markings(profile: UserProfile) -> None:
    """Clés inconnues retirées, marques spéciales complétées à 4."""
    data = make_reading_dict()
    data["lines"]["palmLine"] = dict(data["lines"]["lifeLine"])
    data["specialMarkings"] = data["specialMarkings"][:1] + ["?"]
    reading, patched = patch_reading(data, profile)
    out = reading.to_json()
    assert set(out["lines"]) == set(LINE_KEYS)
    assert len(out["specialMarkings"]) == 4
    assert out["specialMarkings"][0] == data["specialMarkings"][0]
    assert "specialMarkings" in patched


def test_patch_of_single_line_reading_fills_everything_else(profile: UserProfile) -> None:
    """Une seule ligne fournie: 6 lignes et 7 monts complétés par les textes génériques."""
    data = {"lines": {"lifeLine": make_reading_dict()["lines"]["lifeLine"]}}
    decision = SelfHealingPolicy().on_incomplete(validate_reading_data(data), profile)
    out = decision.reading.to_json()
    filled_lines = [k for k in LINE_KEYS if out["lines"][k]["meaning"] == FILLER_LINE["meaning"]]
    assert filled_lines == list(LINE_KEYS[1:])
    assert all(out["mounts"][k]["meaning"] == FILLER_MOUNT["meaning"] for k in MOUNT_KEYS)
    assert out["lines"]["lifeLine"] == data["lines"]["lifeLine"]


def test_self_healing_without_data_synthesizes(profile: UserProfile) -> None:
    """Un JSON non-objet ne peut pas être complété: lecture synthétique."""
    decision = SelfHealingPolicy().on_incomplete(validate_reading_data([1, 2]), profile)
    assert decision.based_on_actual_images is False
    assert decision.reason.startswith("INCOMPLETE_CONTENT")


def test_strict_policy_raises(profile: UserProfile) -> None:
    """La politique stricte ne renvoie jamais de contenu partiel."""
    policy = StrictPolicy()
    error = ProviderError("down", status=502)
    with pytest.raises(ProviderError):
        policy.on_error(error, profile)
    result = validate_reading_data({"greeting": "Hello there friend"})
    with pytest.raises(IncompleteContentError) as exc_info:
        policy.on_incomplete(result, profile)
    assert "mounts section missing" in exc_info.value.issues
    assert "mounts" in exc_info.value.message


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("strict", POLICY_STRICT),
        ("STRICT", POLICY_STRICT),
        ("self_healing", POLICY_SELF_HEALING),
        ("self-healing", POLICY_SELF_HEALING),
        ("enterprise", POLICY_SELF_HEALING),
    ],
)
def test_policy_from_name(name: str, expected: str) -> None:
    """Sélection de la politique par configuration."""
    assert policy_from_name(name).name == expected


def test_policy_from_name_rejects_unknown() -> None:
    """Un nom inconnu est une erreur de configuration."""
    with pytest.raises(ValueError):
        policy_from_name("optimistic")


@pytest.mark.parametrize("value", ["²", "①", "٣"])
def test_non_ascii_digits_are_patched(value: str, profile: UserProfile) -> None:
    """Des chiffres Unicode non convertibles en entier sont remplacés, pas transmis au modèle."""
    data = make_reading_dict()
    data["luckyElements"]["numbers"] = [value, 3, 7]
    result = validate_reading_data(data)
    assert "luckyElements.numbers must be numbers" in result.issues
    decision = SelfHealingPolicy().on_incomplete(result, profile)
    assert decision.based_on_actual_images is True
    assert decision.reading.to_json()["luckyElements"]["numbers"] == FILLER_LUCKY["numbers"]
    assert "luckyElements.numbers" in decision.patched_fields


def test_self_healing_synthesizes_when_patch_is_rejected(
    profile: UserProfile, monkeypatch
) -> None:
    """Si la lecture complétée est refusée par le modèle, une lecture synthétique est renvoyée."""

    def rejected_patch(data, profile, thresholds=None):
        return Reading.model_validate({"greeting": 1}), []

    monkeypatch.setattr(fallback, "patch_reading", rejected_patch)
    data = make_reading_dict()
    del data["mounts"]
    decision = SelfHealingPolicy().on_incomplete(validate_reading_data(data), profile)
    assert decision.based_on_actual_images is False
    assert decision.reason.startswith("INCOMPLETE_CONTENT")
    assert collect_issues(decision.reading.to_json()) == []
