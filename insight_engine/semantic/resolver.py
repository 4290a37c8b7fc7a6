import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import UnknownField
from .model import Dimension, Metric, SemanticModel


@dataclass(frozen=True)
class DimensionRef:
    name: str
    column: str
    data_type: Optional[str]


@dataclass(frozen=True)
class MetricRef:
    name: str
    formula: str


class SemanticModelResolver:
    def __init__(self, model: SemanticModel) -> None:
        self.model = model
        self._dimensions_by_name: Dict[str, Dimension] = {
            dimension.name: dimension for dimension in model.dimensions
        }
        self._metrics_by_name: Dict[str, Metric] = {metric.name: metric for metric in model.metrics}
        self._logger = logging.getLogger(__name__)

    def is_dimension(self, name: str) -> bool:
        return name in self._dimensions_by_name

    def is_metric(self, name: str) -> bool:
        return name in self._metrics_by_name

    def resolve_dimension(self, name: str) -> DimensionRef:
        dimension = self._dimensions_by_name.get(name)
        if dimension is None:
            raise UnknownField(name, "dimension", self.model.id)
        return DimensionRef(
            name=dimension.name,
            column=dimension.column_name,
            data_type=dimension.data_type,
        )

    def resolve_metric(self, name: str) -> MetricRef:
        metric = self._metrics_by_name.get(name)
        if metric is None:
            raise UnknownField(name, "metric", self.model.id)
        return MetricRef(name=metric.name, formula=metric.formula)
