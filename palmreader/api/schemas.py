# Schémas Pydantic exposés par l'API (requêtes).

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from palmreader.domain.models import strip_data_uri


class PalmReadingPayload(BaseModel):
    """Corps de `POST /generate-palm-reading`.

    Tous les champs sont optionnels au niveau du schéma: l'absence d'un champ requis
    est signalée par la route avec le code `MISSING_INPUT` plutôt qu'une erreur 422.

    Champs:
    - userData: dict (profil: name, age, dateOfBirth, timeOfBirth, zodiacSign, placeOfBirth)
    - leftPalmImage: str (base64, préfixe data: accepté)
    - rightPalmImage: str (base64, préfixe data: accepté)
    - _apiKeyHint: int | None (index de clé API à privilégier)
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    userData: dict[str, Any] | None = None
    leftPalmImage: str | None = None
    rightPalmImage: str | None = None
    api_key_hint: int | None = Field(default=None, alias="_apiKeyHint")

    def missing_fields(self) -> list[str]:
        """Liste les champs requis absents ou vides (préfixe data: seul compris)."""
        missing: list[str] = []
        if not self.userData:
            missing.append("userData")
        elif not str(self.userData.get("name") or "").strip():
            missing.append("userData.name")
        if not strip_data_uri(self.leftPalmImage or ""):
            missing.append("leftPalmImage")
        if not strip_data_uri(self.rightPalmImage or ""):
            missing.append("rightPalmImage")
        return missing
