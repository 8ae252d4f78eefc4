"""Dépendances partagées pour les routes de l'API.

Les routes reçoivent le pipeline via `Depends`, ce qui permet aux tests de le remplacer
(`app.dependency_overrides`) sans toucher au conteneur global.
"""

from palmreader.domain.reading_pipeline import ReadingPipeline


def get_pipeline() -> ReadingPipeline:
    """Pipeline de lecture du process (construit au premier appel)."""
    from palmreader.core.container import container

    return container.pipeline
