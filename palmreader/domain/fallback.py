"""
Politiques de repli en cas d'échec de génération.

Deux politiques partagent la même interface:
- `StrictPolicy`: toute anomalie est une erreur, aucun contenu partiel n'est renvoyé.
- `SelfHealingPolicy`: l'utilisateur reçoit toujours une lecture complète; en cas d'erreur du
  fournisseur ou de JSON illisible, une lecture générique est synthétisée; si seuls certains champs
  manquent, seuls ces champs sont complétés.

Les textes de remplissage sont des constantes du module: ils sont donc reconnaissables face à un
texte rédigé par le LLM.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from palmreader.domain.errors import IncompleteContentError, ReadingError
from palmreader.domain.models import (
    LINE_FIELDS,
    LINE_KEYS,
    LUCKY_COUNTS,
    MOUNT_FIELDS,
    MOUNT_KEYS,
    SPECIAL_MARKINGS_COUNT,
    Reading,
    UserProfile,
)
from palmreader.domain.prompt_builder import LINE_NAMES, MOUNT_NAMES
from palmreader.domain.validator import (
    TOP_LEVEL_TEXT_FIELDS,
    ValidationResult,
    ValidationThresholds,
    is_number,
    is_text,
)

log = structlog.get_logger(__name__)

POLICY_STRICT = "strict"
POLICY_SELF_HEALING = "self_healing"

FILLER_PAD = "Trust the quiet wisdom your hands reveal."

FILLER_LINE = {
    "description": "A clear and steady line that speaks of balance.",
    "meaning": "Significant life insights are woven into this line.",
}
FILLER_INSIGHT = "important guidance for your journey lies ahead; stay open to it."
FILLER_MOUNT = {
    "prominence": "Well-developed",
    "meaning": "This mount adds a harmonious influence to your personality.",
}
FILLER_MARKINGS = (
    "Unique marking of success",
    "Special sign of wisdom",
    "Distinctive pattern of growth",
    "Rare symbol of potential",
)
FILLER_LUCKY: dict[str, list[Any]] = {
    "colors": ["Blue", "Green", "Gold"],
    "numbers": [7, 3, 11],
    "days": ["Wednesday", "Friday"],
}
FILLER_HAND_COMPARISON = (
    "Your hands reveal a balanced approach to life, blending intuition with practical sense."
)
FILLER_FUTURE_INSIGHTS = (
    "Positive developments await in your future. New opportunities will appear when you "
    "follow your curiosity."
)
FILLER_ADVICE = (
    "Trust your instincts and embrace opportunities for growth. Small steady steps will carry "
    "you further than you expect."
)


def _fit(text: str, min_len: int) -> str:
    """Allonge un texte de remplissage jusqu'au seuil demandé."""
    while len(text.strip()) < min_len:
        text = f"{text} {FILLER_PAD}"
    return text


def _line_filler(key: str, name: str, t: ValidationThresholds) -> dict[str, str]:
    label = LINE_NAMES[key][0]
    values = {"name": label, **FILLER_LINE, "personalizedInsight": f"{name}, {FILLER_INSIGHT}"}
    return {k: _fit(values[k], t.for_line_field(k)) for k in LINE_FIELDS}


def _mount_filler(key: str, t: ValidationThresholds) -> dict[str, str]:
    values = {"name": MOUNT_NAMES[key][0], **FILLER_MOUNT}
    return {k: _fit(values[k], t.for_mount_field(k)) for k in MOUNT_FIELDS}


def _top_level_filler(key: str, profile: UserProfile, t: ValidationThresholds) -> str:
    zodiac = profile.resolved_zodiac()
    texts = {
        "greeting": f"Hello {profile.name}! Your palm reading is ready.",
        "overallPersonality": (
            f"As a {zodiac.value}, {profile.name} shows natural warmth and analytical thinking."
            if zodiac
            else f"{profile.name} shows a unique blend of strength, warmth and wisdom."
        ),
        "handComparison": FILLER_HAND_COMPARISON,
        "futureInsights": FILLER_FUTURE_INSIGHTS,
        "personalizedAdvice": FILLER_ADVICE,
    }
    return _fit(texts[key], t.for_top_level(key))


def synthesize_reading(
    profile: UserProfile, thresholds: ValidationThresholds | None = None
) -> Reading:
    """Lecture générique, déterministe et complète pour un profil."""
    t = thresholds or ValidationThresholds()
    data = {key: _top_level_filler(key, profile, t) for key in TOP_LEVEL_TEXT_FIELDS}
    data["lines"] = {key: _line_filler(key, profile.name, t) for key in LINE_KEYS}
    data["mounts"] = {key: _mount_filler(key, t) for key in MOUNT_KEYS}
    data["specialMarkings"] = [_fit(m, t.special_marking) for m in FILLER_MARKINGS]
    data["luckyElements"] = copy.deepcopy(FILLER_LUCKY)
    return Reading.model_validate(data)


def patch_reading(
    data: dict[str, Any],
    profile: UserProfile,
    thresholds: ValidationThresholds | None = None,
) -> tuple[Reading, list[str]]:
    """
    Complète uniquement les champs défaillants d'une lecture partielle.

    Returns:
        tuple[Reading, list[str]]: La lecture complète et la liste des champs complétés.
    """
    t = thresholds or ValidationThresholds()
    out = copy.deepcopy(data)
    patched: list[str] = []

    for key in TOP_LEVEL_TEXT_FIELDS:
        if not is_text(out.get(key), t.for_top_level(key)):
            out[key] = _top_level_filler(key, profile, t)
            patched.append(key)

    lines = out.get("lines") if isinstance(out.get("lines"), dict) else {}
    fixed_lines: dict[str, Any] = {}
    for key in LINE_KEYS:
        line = lines.get(key)
        filler = _line_filler(key, profile.name, t)
        if not isinstance(line, dict):
            fixed_lines[key] = filler
            patched.append(f"lines.{key}")
            continue
        fixed = dict(line)
        for name in LINE_FIELDS:
            if not is_text(fixed.get(name), t.for_line_field(name)):
                fixed[name] = filler[name]
                patched.append(f"lines.{key}.{name}")
        fixed_lines[key] = fixed
    out["lines"] = fixed_lines

    mounts = out.get("mounts") if isinstance(out.get("mounts"), dict) else {}
    fixed_mounts: dict[str, Any] = {}
    for key in MOUNT_KEYS:
        mount = mounts.get(key)
        filler = _mount_filler(key, t)
        if not isinstance(mount, dict):
            fixed_mounts[key] = filler
            patched.append(f"mounts.{key}")
            continue
        fixed = dict(mount)
        for name in MOUNT_FIELDS:
            if not is_text(fixed.get(name), t.for_mount_field(name)):
                fixed[name] = filler[name]
                patched.append(f"mounts.{key}.{name}")
        fixed_mounts[key] = fixed
    out["mounts"] = fixed_mounts

    markings = out.get("specialMarkings")
    kept = [
        m for m in (markings if isinstance(markings, list) else []) if is_text(m, t.special_marking)
    ][:SPECIAL_MARKINGS_COUNT]
    if kept != markings:
        for filler in FILLER_MARKINGS[len(kept) :]:
            kept.append(_fit(filler, t.special_marking))
        out["specialMarkings"] = kept
        patched.append("specialMarkings")

    lucky = dict(out["luckyElements"]) if isinstance(out.get("luckyElements"), dict) else {}
    for kind, count in LUCKY_COUNTS.items():
        values = lucky.get(kind)
        check = is_number if kind == "numbers" else (lambda v: is_text(v, 1))
        if not isinstance(values, list) or len(values) != count or not all(map(check, values)):
            lucky[kind] = list(FILLER_LUCKY[kind])
            patched.append(f"luckyElements.{kind}")
    out["luckyElements"] = lucky

    return Reading.model_validate(out), patched


@dataclass
class PolicyDecision:
    """Lecture retenue par la politique, et comment elle a été obtenue."""

    reading: Reading
    based_on_actual_images: bool
    fallback: bool = False
    reason: str | None = None
    patched_fields: list[str] = field(default_factory=list)


class FallbackPolicy(ABC):
    """Interface commune des politiques de repli."""

    name: str

    @abstractmethod
    def on_error(self, error: ReadingError, profile: UserProfile) -> PolicyDecision:
        """Traite une erreur fournisseur ou de parsing."""

    @abstractmethod
    def on_incomplete(self, result: ValidationResult, profile: UserProfile) -> PolicyDecision:
        """Traite une réponse lisible mais incomplète."""


class StrictPolicy(FallbackPolicy):
    """Aucune réparation: toute anomalie remonte au client comme une erreur."""

    name = POLICY_STRICT

    def on_error(self, error: ReadingError, profile: UserProfile) -> PolicyDecision:
        raise error

    def on_incomplete(self, result: ValidationResult, profile: UserProfile) -> PolicyDecision:
        raise IncompleteContentError(result.issues, result.data)


class SelfHealingPolicy(FallbackPolicy):
    """Disponibilité d'abord: synthétise ou complète, et marque la lecture comme repli."""

    name = POLICY_SELF_HEALING

    def __init__(self, thresholds: ValidationThresholds | None = None) -> None:
        self.thresholds = thresholds or ValidationThresholds()

    def on_error(self, error: ReadingError, profile: UserProfile) -> PolicyDecision:
        log.warning(
            "palm_reading_fallback_synthesized",
            kind=error.kind.value,
            error=error.message,
        )
        return PolicyDecision(
            reading=synthesize_reading(profile, self.thresholds),
            based_on_actual_images=False,
            fallback=True,
            reason=f"{error.kind.value}: {error.message}",
        )

    def on_incomplete(self, result: ValidationResult, profile: UserProfile) -> PolicyDecision:
        if result.data is None:
            return self.on_error(IncompleteContentError(result.issues), profile)
        try:
            reading, patched = patch_reading(result.data, profile, self.thresholds)
        except ValidationError as exc:
            log.warning("palm_reading_patch_rejected", errors=exc.error_count())
            return self.on_error(IncompleteContentError(result.issues), profile)
        log.warning("palm_reading_patched", patched_fields=patched, issues=len(result.issues))
        return PolicyDecision(
            reading=reading,
            based_on_actual_images=True,
            fallback=True,
            reason="INCOMPLETE_CONTENT",
            patched_fields=patched,
        )


def policy_from_name(
    name: str, thresholds: ValidationThresholds | None = None
) -> FallbackPolicy:
    """Instancie la politique nommée (`strict` ou `self_healing`)."""
    normalized = (name or "").strip().lower().replace("-", "_")
    if normalized == POLICY_STRICT:
        return StrictPolicy()
    if normalized in {POLICY_SELF_HEALING, "selfhealing", "enterprise"}:
        return SelfHealingPolicy(thresholds)
    raise ValueError(f"unknown fallback policy: {name!r}")
