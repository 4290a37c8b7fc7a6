from typing import Optional

from insight_engine.errors import InsightEngineError


class SemanticModelError(InsightEngineError):
    """Raised when a semantic model definition cannot be parsed or validated."""

    error_type = "SemanticModelError"


class SemanticModelNotFound(SemanticModelError):
    error_type = "SemanticModelNotFound"


class UnknownField(InsightEngineError):
    """Raised when a requested dimension or metric is not part of the model."""

    error_type = "UnknownField"

    def __init__(self, field: str, kind: str, model_id: Optional[str] = None):
        self.field = field
        self.kind = kind
        self.model_id = model_id
        location = f" in semantic model '{model_id}'" if model_id else ""
        super().__init__(f"Unknown {kind} '{field}'{location}.")
