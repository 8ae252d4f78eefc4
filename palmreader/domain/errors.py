"""Erreurs métier du pipeline de génération de lecture.

Chaque erreur porte un `ErrorKind` stable, utilisé pour les logs, les métriques et le choix du code
HTTP. Aucune de ces erreurs n'est rejouée auprès du fournisseur LLM.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Catégories d'échec du pipeline."""

    MISSING_INPUT = "MISSING_INPUT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PARSE_ERROR = "JSON_ERROR"
    INCOMPLETE_CONTENT = "INCOMPLETE_CONTENT"


class ReadingError(Exception):
    """Erreur de base du pipeline de lecture."""

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingInputError(ReadingError):
    """La requête ne contient pas le profil ou l'une des deux images."""

    kind = ErrorKind.MISSING_INPUT

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = missing or []


class ProviderError(ReadingError):
    """Échec réseau, timeout ou statut non-2xx du fournisseur LLM."""

    kind = ErrorKind.PROVIDER_ERROR

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ParseError(ReadingError):
    """Le texte renvoyé par le fournisseur n'est pas un JSON valide."""

    kind = ErrorKind.PARSE_ERROR

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class IncompleteContentError(ReadingError):
    """Le JSON a été lu mais ne respecte pas l'invariant de complétude."""

    kind = ErrorKind.INCOMPLETE_CONTENT

    def __init__(self, issues: list[str], partial: dict[str, Any] | None = None) -> None:
        super().__init__("Incomplete reading: " + ", ".join(issues))
        self.issues = issues
        self.partial = partial
