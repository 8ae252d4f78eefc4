"""Calculs de signe zodiacal et d'âge à partir de la date de naissance."""

from __future__ import annotations

from datetime import date, datetime

# (signe, (mois, jour) de début, (mois, jour) de fin), tropical
ZODIAC_RANGES: tuple[tuple[str, tuple[int, int], tuple[int, int]], ...] = (
    ("Aries", (3, 21), (4, 19)),
    ("Taurus", (4, 20), (5, 20)),
    ("Gemini", (5, 21), (6, 20)),
    ("Cancer", (6, 21), (7, 22)),
    ("Leo", (7, 23), (8, 22)),
    ("Virgo", (8, 23), (9, 22)),
    ("Libra", (9, 23), (10, 22)),
    ("Scorpio", (10, 23), (11, 21)),
    ("Sagittarius", (11, 22), (12, 21)),
    ("Capricorn", (12, 22), (1, 19)),
    ("Aquarius", (1, 20), (2, 18)),
    ("Pisces", (2, 19), (3, 20)),
)


def parse_birth_date(value: str | None) -> date | None:
    """Lit une date ISO (`YYYY-MM-DD`, éventuellement suivie d'une heure); None si invalide."""
    if not value:
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def zodiac_from_date(birth: date) -> str:
    """Retourne le nom du signe (ex: "Leo") pour une date de naissance."""
    md = (birth.month, birth.day)
    for sign, start, end in ZODIAC_RANGES:
        if start > end:
            # Capricorne chevauche le changement d'année
            if md >= start or md <= end:
                return sign
        elif start <= md <= end:
            return sign
    raise ValueError(f"no zodiac sign for {birth.isoformat()}")  # pragma: no cover


def age_from_birth_date(birth: date, today: date | None = None) -> int:
    """Âge en années révolues à la date `today` (aujourd'hui par défaut)."""
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return max(age, 0)
