"""
Validation des réponses du fournisseur LLM.

Le texte brut est lu strictement comme JSON puis confronté, champ par champ, à l'invariant de
complétude d'une lecture. Tous les problèmes sont collectés (pas d'arrêt au premier) afin d'être
journalisés et agrégés par le harnais de charge.

Deux usages:
- production: `ValidationResult.acceptable` (booléen strict)
- diagnostic: `ValidationResult.issues` et `ValidationResult.status` (PERFECT / INCOMPLETE /
  JSON_ERROR)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from typing import Any

import structlog
from pydantic import ValidationError

from palmreader.domain.errors import ErrorKind
from palmreader.domain.models import (
    LINE_FIELDS,
    LINE_KEYS,
    LUCKY_COUNTS,
    MOUNT_FIELDS,
    MOUNT_KEYS,
    SPECIAL_MARKINGS_COUNT,
    Reading,
)

log = structlog.get_logger(__name__)

STATUS_PERFECT = "PERFECT"
STATUS_INCOMPLETE = "INCOMPLETE"
STATUS_JSON_ERROR = "JSON_ERROR"


@dataclass(frozen=True)
class ValidationThresholds:
    """Longueurs minimales (en caractères) exigées par champ."""

    greeting: int = 10
    overall_personality: int = 20
    line_name: int = 3
    line_text: int = 10
    mount_name: int = 3
    mount_prominence: int = 3
    mount_meaning: int = 10
    special_marking: int = 5
    hand_comparison: int = 30
    future_insights: int = 50
    personalized_advice: int = 50

    @classmethod
    def from_json(cls, raw: str | None) -> ValidationThresholds:
        """Construit des seuils à partir d'un JSON de surcharges (clés inconnues ignorées)."""
        base = cls()
        try:
            overrides = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            log.warning("invalid_validation_thresholds_json", error=str(exc))
            return base
        if not isinstance(overrides, dict):
            log.warning("invalid_validation_thresholds_json", error="not an object")
            return base
        known = {f.name for f in fields(cls)}
        clean = {
            k: int(v)
            for k, v in overrides.items()
            if k in known and isinstance(v, int | float) and v >= 0
        }
        return replace(base, **clean)

    def for_line_field(self, name: str) -> int:
        """Seuil d'un sous-champ de ligne."""
        return self.line_name if name == "name" else self.line_text

    def for_mount_field(self, name: str) -> int:
        """Seuil d'un sous-champ de mont."""
        return {
            "name": self.mount_name,
            "prominence": self.mount_prominence,
        }.get(name, self.mount_meaning)

    def for_top_level(self, key: str) -> int:
        """Seuil d'un champ narratif de premier niveau (clé camelCase)."""
        return {
            "greeting": self.greeting,
            "overallPersonality": self.overall_personality,
            "handComparison": self.hand_comparison,
            "futureInsights": self.future_insights,
            "personalizedAdvice": self.personalized_advice,
        }[key]


TOP_LEVEL_TEXT_FIELDS: tuple[str, ...] = (
    "greeting",
    "overallPersonality",
    "handComparison",
    "futureInsights",
    "personalizedAdvice",
)


@dataclass
class ValidationResult:
    """Résultat de validation: lecture typée si complète, sinon données partielles + problèmes."""

    complete: bool
    issues: list[str] = field(default_factory=list)
    data: dict[str, Any] | None = None
    reading: Reading | None = None
    error_kind: ErrorKind | None = None

    @property
    def acceptable(self) -> bool:
        """Vrai si la lecture peut être renvoyée telle quelle au client."""
        return self.complete and self.reading is not None

    @property
    def status(self) -> str:
        """Classification de rapport: PERFECT, INCOMPLETE ou JSON_ERROR."""
        if self.error_kind is ErrorKind.PARSE_ERROR:
            return STATUS_JSON_ERROR
        return STATUS_PERFECT if self.complete else STATUS_INCOMPLETE


def is_text(value: Any, min_len: int) -> bool:
    """Chaîne non vide d'au moins `min_len` caractères (espaces exclus)."""
    return isinstance(value, str) and len(value.strip()) >= max(min_len, 1)


def _check_lines(data: dict[str, Any], t: ValidationThresholds, issues: list[str]) -> None:
    lines = data.get("lines")
    if not isinstance(lines, dict):
        issues.append("lines section missing")
        return
    for key in LINE_KEYS:
        line = lines.get(key)
        if not isinstance(line, dict):
            issues.append(f"lines.{key} missing")
            continue
        for name in LINE_FIELDS:
            if not is_text(line.get(name), t.for_line_field(name)):
                issues.append(f"lines.{key}.{name} missing/short")
    extra = sorted(set(lines) - set(LINE_KEYS))
    if extra:
        issues.append(f"lines has unexpected keys: {', '.join(map(str, extra))}")


def _check_mounts(data: dict[str, Any], t: ValidationThresholds, issues: list[str]) -> None:
    mounts = data.get("mounts")
    if not isinstance(mounts, dict):
        issues.append("mounts section missing")
        return
    for key in MOUNT_KEYS:
        mount = mounts.get(key)
        if not isinstance(mount, dict):
            issues.append(f"mounts.{key} missing")
            continue
        for name in MOUNT_FIELDS:
            if not is_text(mount.get(name), t.for_mount_field(name)):
                issues.append(f"mounts.{key}.{name} missing/short")
    extra = sorted(set(mounts) - set(MOUNT_KEYS))
    if extra:
        issues.append(f"mounts has unexpected keys: {', '.join(map(str, extra))}")


def _check_markings(data: dict[str, Any], t: ValidationThresholds, issues: list[str]) -> None:
    markings = data.get("specialMarkings")
    if not isinstance(markings, list):
        issues.append("specialMarkings missing")
        return
    if len(markings) != SPECIAL_MARKINGS_COUNT:
        issues.append(
            f"specialMarkings must have exactly {SPECIAL_MARKINGS_COUNT} entries "
            f"(got {len(markings)})"
        )
    for i, marking in enumerate(markings[:SPECIAL_MARKINGS_COUNT]):
        if not is_text(marking, t.special_marking):
            issues.append(f"specialMarkings[{i}] missing/short")


def _check_lucky(data: dict[str, Any], issues: list[str]) -> None:
    lucky = data.get("luckyElements")
    if not isinstance(lucky, dict):
        issues.append("luckyElements missing")
        return
    for kind, count in LUCKY_COUNTS.items():
        values = lucky.get(kind)
        if not isinstance(values, list) or len(values) != count:
            got = len(values) if isinstance(values, list) else 0
            issues.append(f"luckyElements.{kind} must have exactly {count} entries (got {got})")
            continue
        if kind == "numbers":
            if not all(is_number(v) for v in values):
                issues.append("luckyElements.numbers must be numbers")
        elif not all(is_text(v, 1) for v in values):
            issues.append(f"luckyElements.{kind} has empty entries")


def is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    if not isinstance(value, str):
        return False
    stripped = value.strip()
    return stripped.isascii() and stripped.isdigit()


def collect_issues(
    data: dict[str, Any], thresholds: ValidationThresholds | None = None
) -> list[str]:
    """Liste tous les écarts d'un dict de lecture à l'invariant de complétude."""
    t = thresholds or ValidationThresholds()
    issues: list[str] = []
    for key in TOP_LEVEL_TEXT_FIELDS[:2]:
        if not is_text(data.get(key), t.for_top_level(key)):
            issues.append(f"{key} missing/short")
    _check_lines(data, t, issues)
    _check_mounts(data, t, issues)
    _check_markings(data, t, issues)
    for key in TOP_LEVEL_TEXT_FIELDS[2:]:
        if not is_text(data.get(key), t.for_top_level(key)):
            issues.append(f"{key} missing/short")
    _check_lucky(data, issues)
    return issues


def validate_reading_data(
    data: Any, thresholds: ValidationThresholds | None = None
) -> ValidationResult:
    """Valide un objet JSON déjà décodé."""
    if not isinstance(data, dict):
        return ValidationResult(
            complete=False,
            issues=["reading must be a JSON object"],
            error_kind=ErrorKind.INCOMPLETE_CONTENT,
        )
    issues = collect_issues(data, thresholds)
    if issues:
        return ValidationResult(
            complete=False,
            issues=issues,
            data=data,
            error_kind=ErrorKind.INCOMPLETE_CONTENT,
        )
    try:
        reading = Reading.model_validate(data)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'reading'}: {err['msg']}"
            for err in exc.errors()
        ]
        return ValidationResult(
            complete=False,
            issues=errors,
            data=data,
            error_kind=ErrorKind.INCOMPLETE_CONTENT,
        )
    return ValidationResult(complete=True, data=data, reading=reading)


def validate_reading_text(
    raw: str | None, thresholds: ValidationThresholds | None = None
) -> ValidationResult:
    """
    Décode le texte brut du fournisseur puis le valide.

    Un texte non-JSON produit `error_kind=PARSE_ERROR`, distinct d'un contenu incomplet.
    """
    try:
        data = json.loads(raw or "")
    except (json.JSONDecodeError, TypeError) as exc:
        return ValidationResult(
            complete=False,
            issues=[f"JSON_ERROR: {exc}"],
            error_kind=ErrorKind.PARSE_ERROR,
        )
    return validate_reading_data(data, thresholds)
