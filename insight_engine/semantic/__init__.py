from .compiler import CompiledQuery, SemanticQueryCompiler
from .errors import SemanticModelError, SemanticModelNotFound, UnknownField
from .loader import load_semantic_models, parse_semantic_model_payload, validate_semantic_model
from .model import Dimension, Metric, SemanticModel
from .query_model import FilterValue, OrderItem, SemanticQueryRequest
from .registry import InMemorySemanticModelRegistry, SemanticModelRegistry, YamlSemanticModelRegistry
from .resolver import DimensionRef, MetricRef, SemanticModelResolver

__all__ = [
    "CompiledQuery",
    "SemanticQueryCompiler",
    "SemanticModelError",
    "SemanticModelNotFound",
    "UnknownField",
    "load_semantic_models",
    "parse_semantic_model_payload",
    "validate_semantic_model",
    "Dimension",
    "Metric",
    "SemanticModel",
    "FilterValue",
    "OrderItem",
    "SemanticQueryRequest",
    "InMemorySemanticModelRegistry",
    "SemanticModelRegistry",
    "YamlSemanticModelRegistry",
    "DimensionRef",
    "MetricRef",
    "SemanticModelResolver",
]
