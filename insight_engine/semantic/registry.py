from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

from .errors import SemanticModelError, SemanticModelNotFound
from .loader import load_semantic_models, validate_semantic_model
from .model import SemanticModel


class SemanticModelRegistry(Protocol):
    def get(self, model_id: str) -> SemanticModel:
        ...


class InMemorySemanticModelRegistry:
    def __init__(self, models: Optional[Iterable[SemanticModel]] = None) -> None:
        self._models: Dict[str, SemanticModel] = {}
        for model in models or []:
            self.register(model)

    def register(self, model: SemanticModel) -> None:
        validate_semantic_model(model)
        self._models[model.id] = model

    def get(self, model_id: str) -> SemanticModel:
        model = self._models.get(model_id)
        if model is None:
            raise SemanticModelNotFound(f"Semantic model '{model_id}' not found.")
        return model

    def list_ids(self) -> List[str]:
        return sorted(self._models)


class YamlSemanticModelRegistry(InMemorySemanticModelRegistry):
    """Loads every ``*.yml`` / ``*.yaml`` file in a directory at construction."""

    def __init__(self, directory: str | Path) -> None:
        super().__init__()
        self._directory = Path(directory)
        self._logger = logging.getLogger(__name__)
        if not self._directory.is_dir():
            raise SemanticModelError(f"Semantic model directory {self._directory} does not exist.")
        for path in sorted(self._directory.iterdir()):
            if path.suffix.lower() not in {".yml", ".yaml"}:
                continue
            for model in load_semantic_models(path):
                if model.id in self._models:
                    raise SemanticModelError(f"Duplicate semantic model id '{model.id}' in {path}.")
                self.register(model)
                self._logger.info("Loaded semantic model %s from %s", model.id, path.name)
