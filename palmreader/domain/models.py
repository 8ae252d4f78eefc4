"""Modèles de domaine (cœur métier) indépendants de l'API.

Objectif du module
------------------
- Définir le profil utilisateur, la requête de lecture et la lecture elle-même.
- Fixer le vocabulaire: les 7 lignes, les 7 monts et les cardinalités attendues.

Les champs sont exposés en camelCase (contrat JSON du client mobile) et restent accessibles en
snake_case côté Python.
"""

from __future__ import annotations

import re
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from palmreader.domain.zodiac import age_from_birth_date, parse_birth_date, zodiac_from_date

_TIME_OF_BIRTH_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")
_DATA_URI_RE = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


def strip_data_uri(image: str) -> str:
    """Retire un éventuel préfixe `data:image/...;base64,` d'une image base64."""
    return _DATA_URI_RE.sub("", image.strip()).strip()


class ZodiacSign(str, Enum):
    """Les 12 signes du zodiaque tropical."""

    ARIES = "Aries"
    TAURUS = "Taurus"
    GEMINI = "Gemini"
    CANCER = "Cancer"
    LEO = "Leo"
    VIRGO = "Virgo"
    LIBRA = "Libra"
    SCORPIO = "Scorpio"
    SAGITTARIUS = "Sagittarius"
    CAPRICORN = "Capricorn"
    AQUARIUS = "Aquarius"
    PISCES = "Pisces"

    @classmethod
    def parse(cls, value: Any) -> ZodiacSign | None:
        """Convertit une valeur libre ("leo", "LEO", "Leo") en signe, sinon None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().lower()
        for sign in cls:
            if sign.value.lower() == wanted:
                return sign
        return None


class LineKey(str, Enum):
    """Clés des lignes de la main attendues dans une lecture."""

    LIFE = "lifeLine"
    HEART = "heartLine"
    HEAD = "headLine"
    MARRIAGE = "marriageLine"
    FATE = "fateLine"
    SUCCESS = "successLine"
    TRAVEL = "travelLine"


class MountKey(str, Enum):
    """Clés des monts de la main attendus dans une lecture."""

    MARS = "mars"
    JUPITER = "jupiter"
    SATURN = "saturn"
    SUN = "sun"
    MERCURY = "mercury"
    MOON = "moon"
    VENUS = "venus"


LINE_KEYS: tuple[str, ...] = tuple(k.value for k in LineKey)
MOUNT_KEYS: tuple[str, ...] = tuple(k.value for k in MountKey)
LINE_FIELDS: tuple[str, ...] = ("name", "description", "meaning", "personalizedInsight")
MOUNT_FIELDS: tuple[str, ...] = ("name", "prominence", "meaning")
SPECIAL_MARKINGS_COUNT = 4
LUCKY_COUNTS: dict[str, int] = {"colors": 3, "numbers": 3, "days": 2}


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class PlaceOfBirth(_CamelModel):
    """Lieu de naissance, entièrement optionnel."""

    city: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None

    def label(self) -> str | None:
        """Libellé lisible ("Paris, France") ou None si rien n'est connu."""
        parts = [p for p in (self.city, self.country) if p]
        return ", ".join(parts) if parts else None


class UserProfile(_CamelModel):
    """Profil utilisateur transmis avec la requête; jamais persisté ici."""

    name: str = Field(..., min_length=1)
    age: int | None = Field(default=None, ge=0, le=150)
    date_of_birth: date | None = None
    time_of_birth: str | None = None
    zodiac_sign: ZodiacSign | None = None
    place_of_birth: PlaceOfBirth | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _lenient_date(cls, value: Any) -> Any:
        if value is None or isinstance(value, date):
            return value
        return parse_birth_date(str(value))

    @field_validator("time_of_birth", mode="before")
    @classmethod
    def _lenient_time(cls, value: Any) -> Any:
        if not isinstance(value, str) or not _TIME_OF_BIRTH_RE.match(value.strip()):
            return None
        return value.strip()

    @field_validator("zodiac_sign", mode="before")
    @classmethod
    def _lenient_sign(cls, value: Any) -> Any:
        return ZodiacSign.parse(value)

    def resolved_age(self, today: date | None = None) -> int | None:
        """Âge fourni, sinon déduit de la date de naissance."""
        if self.age is not None:
            return self.age
        if self.date_of_birth is not None:
            return age_from_birth_date(self.date_of_birth, today=today)
        return None

    def resolved_zodiac(self) -> ZodiacSign | None:
        """Signe fourni, sinon déduit de la date de naissance."""
        if self.zodiac_sign is not None:
            return self.zodiac_sign
        if self.date_of_birth is not None:
            return ZodiacSign(zodiac_from_date(self.date_of_birth))
        return None


class ReadingRequest(_CamelModel):
    """Requête de lecture: un profil et deux images base64."""

    profile: UserProfile
    left_image: str = Field(..., min_length=1)
    right_image: str = Field(..., min_length=1)
    credential_hint: int | None = None

    @field_validator("left_image", "right_image", mode="before")
    @classmethod
    def _strip_data_uri(cls, value: Any) -> Any:
        if isinstance(value, str):
            return strip_data_uri(value)
        return value


class PalmLine(_CamelModel):
    """Analyse d'une ligne de la main."""

    name: str
    description: str
    meaning: str
    personalized_insight: str


class Mount(_CamelModel):
    """Analyse d'un mont de la main."""

    name: str
    prominence: str
    meaning: str


class LuckyElements(_CamelModel):
    """Éléments porte-bonheur: 3 couleurs, 3 nombres, 2 jours."""

    colors: list[str] = Field(..., min_length=3, max_length=3)
    numbers: list[int] = Field(..., min_length=3, max_length=3)
    days: list[str] = Field(..., min_length=2, max_length=2)


class Reading(_CamelModel):
    """Lecture complète, construite une fois par requête puis jamais modifiée."""

    greeting: str
    overall_personality: str
    lines: dict[str, PalmLine]
    mounts: dict[str, Mount]
    special_markings: list[str] = Field(
        ..., min_length=SPECIAL_MARKINGS_COUNT, max_length=SPECIAL_MARKINGS_COUNT
    )
    hand_comparison: str
    future_insights: str
    personalized_advice: str
    lucky_elements: LuckyElements

    @model_validator(mode="after")
    def _exact_key_sets(self) -> Reading:
        if set(self.lines) != set(LINE_KEYS):
            raise ValueError(f"lines must have exactly the keys {list(LINE_KEYS)}")
        if set(self.mounts) != set(MOUNT_KEYS):
            raise ValueError(f"mounts must have exactly the keys {list(MOUNT_KEYS)}")
        return self

    def to_json(self) -> dict[str, Any]:
        """Sérialise la lecture au format du client (camelCase, ordre canonique des clés)."""
        data = self.model_dump(by_alias=True, mode="json")
        data["lines"] = {k: data["lines"][k] for k in LINE_KEYS}
        data["mounts"] = {k: data["mounts"][k] for k in MOUNT_KEYS}
        return data
