"""Construction des prompts système et utilisateur pour la lecture des lignes de la main.

Le builder est pur: même profil, même style, même nonce => mêmes chaînes. Le nonce (graine
aléatoire + horodatage) n'a d'autre rôle que d'éviter des réponses identiques d'un appel à l'autre;
il est injectable pour les tests.
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum

from palmreader.domain.models import (
    LINE_KEYS,
    LUCKY_COUNTS,
    MOUNT_KEYS,
    SPECIAL_MARKINGS_COUNT,
    UserProfile,
)

NOT_PROVIDED = "not provided"


class PromptStyle(str, Enum):
    """Variantes de prompt: qualité d'abord ou débit d'abord."""

    DETAILED = "detailed"
    CONCISE = "concise"


@dataclass(frozen=True)
class PromptPair:
    """Couple (prompt système, prompt utilisateur)."""

    system: str
    user: str


LINE_NAMES = {
    "lifeLine": ("Life Line", "vitality and life approach"),
    "heartLine": ("Heart Line", "emotional nature and relationships"),
    "headLine": ("Head Line", "thinking patterns"),
    "marriageLine": ("Marriage Line", "partnerships and commitment"),
    "fateLine": ("Fate Line", "career and life direction"),
    "successLine": ("Success Line", "achievement and recognition"),
    "travelLine": ("Travel Line", "journeys and adventures"),
}

MOUNT_NAMES = {
    "mars": ("Mount of Mars", "courage and determination"),
    "jupiter": ("Mount of Jupiter", "leadership and ambition"),
    "saturn": ("Mount of Saturn", "discipline and responsibility"),
    "sun": ("Mount of Sun (Apollo)", "creativity and artistic expression"),
    "mercury": ("Mount of Mercury", "communication and business sense"),
    "moon": ("Mount of Moon (Luna)", "intuition and imagination"),
    "venus": ("Mount of Venus", "love and vitality"),
}

SYSTEM_PROMPTS = {
    PromptStyle.DETAILED: (
        "You are a fun entertainment palm reading assistant for a mobile app. This is purely for "
        "entertainment purposes, like horoscopes or personality quizzes. You analyze hand images "
        "and create engaging, positive, personalized content for young adults. Always respond "
        "with complete JSON for the app interface."
    ),
    PromptStyle.CONCISE: (
        "You are a palm reading API. Generate fast, accurate and complete palm readings in JSON "
        "format. Keep every field concise but never leave one empty."
    ),
}


def _profile_facts(profile: UserProfile, today: date | None) -> dict[str, str]:
    age = profile.resolved_age(today=today)
    zodiac = profile.resolved_zodiac()
    place = profile.place_of_birth.label() if profile.place_of_birth else None
    return {
        "name": profile.name,
        "age": f"{age} years old" if age is not None else f"age {NOT_PROVIDED}",
        "zodiac": zodiac.value if zodiac else f"zodiac sign {NOT_PROVIDED}",
        "birth_date": profile.date_of_birth.isoformat() if profile.date_of_birth else NOT_PROVIDED,
        "birth_time": profile.time_of_birth or NOT_PROVIDED,
        "birth_place": place or NOT_PROVIDED,
    }


def _schema_skeleton(name: str, style: PromptStyle) -> dict:
    detailed = style is PromptStyle.DETAILED
    lines = {}
    for key in LINE_KEYS:
        label, topic = LINE_NAMES[key]
        lines[key] = {
            "name": label,
            "description": f"Describe what you observe about the {label.lower()}",
            "meaning": f"Explain what this reveals about {topic}",
            "personalizedInsight": (
                f"Write 2-3 sentences of personal guidance for {name}"
                if detailed
                else f"One key insight for {name}"
            ),
        }
    mounts = {}
    for key in MOUNT_KEYS:
        label, topic = MOUNT_NAMES[key]
        mounts[key] = {
            "name": label,
            "prominence": "Describe the prominence level you observe",
            "meaning": f"Explain the {topic} insights this reveals",
        }
    ordinals = ("first", "second", "third", "fourth")
    return {
        "greeting": f"Hi {name}! Your personalized palm reading is ready.",
        "overallPersonality": f"Write 3-4 positive sentences about {name}'s personality",
        "lines": lines,
        "mounts": mounts,
        "specialMarkings": [
            f"Write a {ordinals[i]} distinctive palm feature for {name}"
            for i in range(SPECIAL_MARKINGS_COUNT)
        ],
        "handComparison": f"Write 3-4 sentences comparing left vs right hands for {name}",
        "futureInsights": f"Write 4-5 sentences of predictions and opportunities for {name}",
        "personalizedAdvice": f"Write 4-5 sentences of actionable guidance for {name}",
        "luckyElements": {
            "colors": ["First Color", "Second Color", "Third Color"],
            "numbers": [3, 7, 9],
            "days": ["First Day", "Second Day"],
        },
    }


def build_prompts(
    profile: UserProfile,
    style: PromptStyle = PromptStyle.DETAILED,
    *,
    seed: int | None = None,
    now: datetime | None = None,
) -> PromptPair:
    """
    Construit les prompts système et utilisateur pour un profil.

    Args:
        profile: Profil de l'utilisateur (champs optionnels remplacés par "not provided").
        style: Variante détaillée (qualité) ou concise (débit).
        seed: Graine du nonce; tirée au hasard si absente.
        now: Horodatage du nonce; heure courante (UTC) si absent.

    Returns:
        PromptPair: Prompts prêts à être envoyés au fournisseur.
    """
    style = PromptStyle(style)
    seed = random.randint(0, 999_999) if seed is None else seed
    now = now or datetime.now(UTC)
    facts = _profile_facts(profile, today=now.date())
    name = facts["name"]
    skeleton = json.dumps(_schema_skeleton(name, style), indent=2, ensure_ascii=False)
    lucky = ", ".join(f"{count} {kind}" for kind, count in LUCKY_COUNTS.items())

    header = (
        f"Create a comprehensive palm reading for {name} based on these two hand photos "
        "(left hand first, then right hand). This is for entertainment only."
        if style is PromptStyle.DETAILED
        else f"Generate a palm reading for {name}. Speed matters: be concise but complete."
    )
    user = "\n".join(
        [
            header,
            "",
            f"Person: {name}, {facts['age']}, {facts['zodiac']}",
            f"Birth date: {facts['birth_date']}",
            f"Birth time: {facts['birth_time']}",
            f"Birth place: {facts['birth_place']}",
            "",
            "MANDATORY REQUIREMENTS:",
            f"- Include EXACTLY {len(LINE_KEYS)} lines: {', '.join(LINE_KEYS)}",
            f"- Include EXACTLY {len(MOUNT_KEYS)} mounts: {', '.join(MOUNT_KEYS)}",
            "- Every line needs: name, description, meaning, personalizedInsight",
            "- Every mount needs: name, prominence, meaning",
            f"- specialMarkings must contain exactly {SPECIAL_MARKINGS_COUNT} meaningful entries",
            f"- luckyElements must contain {lucky}",
            "- Never use empty strings or placeholder text",
            "- Return ONLY valid JSON with this exact structure (no markdown, no code blocks):",
            "",
            skeleton,
            "",
            f"Reading reference: {seed}-{now.isoformat()} (make this reading unique).",
        ]
    )
    return PromptPair(system=SYSTEM_PROMPTS[style], user=user)
