"""
Loading and validation of semantic model definitions from YAML or mappings.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, List

import sqlglot
import yaml
from pydantic import ValidationError
from sqlglot import exp

from insight_engine.query.sanitizer import find_forbidden_keywords

from .errors import SemanticModelError
from .model import SemanticModel


def parse_formula(formula: str, *, dialect: str | None = None) -> exp.Expression:
    try:
        return sqlglot.parse_one(formula, read=dialect)
    except sqlglot.ParseError as exc:
        raise SemanticModelError(f"Unable to parse metric formula '{formula}': {exc}") from exc


def validate_semantic_model(model: SemanticModel) -> SemanticModel:
    """
    Reject metrics whose formula does not parse, carries no aggregate or
    contains a mutating keyword.
    """
    for metric in model.metrics:
        found = find_forbidden_keywords(metric.formula)
        if found:
            raise SemanticModelError(
                f"Metric '{metric.name}' formula contains prohibited keywords: {', '.join(found)}."
            )
        parsed = parse_formula(metric.formula)
        if parsed.find(exp.AggFunc) is None:
            raise SemanticModelError(
                f"Metric '{metric.name}' formula must contain an aggregate function."
            )
    return model


def parse_semantic_model_payload(payload: Mapping[str, Any]) -> SemanticModel:
    try:
        model = SemanticModel.model_validate(dict(payload))
    except ValidationError as exc:
        raise SemanticModelError(f"Invalid semantic model definition: {exc}") from exc
    return validate_semantic_model(model)


def load_semantic_models(source: str | Path | Mapping[str, Any]) -> List[SemanticModel]:
    """
    Load one model, or a ``semantic_models`` list of models, from a path,
    raw YAML text or an already-parsed mapping.
    """
    if isinstance(source, Path):
        return load_semantic_models(source.read_text(encoding="utf-8"))
    if isinstance(source, Mapping):
        payload: Any = dict(source)
    else:
        try:
            payload = yaml.safe_load(source)
        except yaml.YAMLError as exc:
            raise SemanticModelError(f"Unable to parse semantic model payload: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise SemanticModelError("Semantic model payload must be a mapping.")

    if "semantic_models" in payload:
        entries = payload.get("semantic_models") or []
        if not isinstance(entries, list) or not entries:
            raise SemanticModelError("semantic_models must be a non-empty list.")
        models = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                raise SemanticModelError("semantic_models entries must be mappings.")
            models.append(parse_semantic_model_payload(entry))
        return models
    return [parse_semantic_model_payload(payload)]


__all__ = [
    "load_semantic_models",
    "parse_formula",
    "parse_semantic_model_payload",
    "validate_semantic_model",
]
