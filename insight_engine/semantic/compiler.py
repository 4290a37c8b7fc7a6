"""
Lowers a business-level semantic request into parameterized SQL.

Dimension names map to columns, metric names map to owner-authored formulas,
and end-user filter values only ever reach the statement as bind parameters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError
from sqlglot import exp

from insight_engine.errors import InvalidRequest

from .errors import SemanticModelError
from .loader import parse_formula
from .model import SemanticModel
from .query_model import FilterValue, OrderItem, SemanticQueryRequest
from .registry import SemanticModelRegistry
from .resolver import DimensionRef, MetricRef, SemanticModelResolver

# offset without limit still needs a LIMIT on sqlite/mysql
_UNBOUNDED_LIMIT = 2147483647


def _bind_placeholder(name: str) -> exp.Expression:
    # text() only recognises :name, whatever dialect the statement targets
    return exp.Var(this=f":{name}")


@dataclass(frozen=True)
class CompiledQuery:
    sql: str
    args: Dict[str, Any]
    model_id: str = ""
    metadata: List[Dict[str, Optional[str]]] = field(default_factory=list)


class SemanticQueryCompiler:
    def __init__(
        self,
        registry: Optional[SemanticModelRegistry] = None,
        *,
        dialect: str = "postgres",
    ) -> None:
        self._registry = registry
        self._dialect = dialect
        self._logger = logging.getLogger(__name__)

    def compile(
        self,
        request: SemanticQueryRequest | Mapping[str, Any],
        model: Optional[SemanticModel] = None,
        *,
        dialect: Optional[str] = None,
    ) -> CompiledQuery:
        parsed = self._parse_request(request)
        dialect = dialect or self._dialect
        if model is None:
            if self._registry is None:
                raise SemanticModelError("No semantic model registry is configured.")
            model = self._registry.get(parsed.model_id)

        resolver = SemanticModelResolver(model)
        dimensions = [resolver.resolve_dimension(name) for name in dict.fromkeys(parsed.dimensions)]
        metrics = [resolver.resolve_metric(name) for name in dict.fromkeys(parsed.metrics)]
        if not dimensions and not metrics:
            raise InvalidRequest("A semantic query must select at least one dimension or metric.")

        select_clauses, group_by_expressions = self._build_selects(dimensions, metrics, dialect)
        conditions, args = self._build_filters(resolver, parsed.filters)

        query = exp.select(*select_clauses).from_(exp.to_table(model.table_name, dialect=dialect))
        if conditions:
            query = query.where(exp.and_(*conditions))
        if metrics and group_by_expressions:
            query = query.group_by(*group_by_expressions)

        order_clauses = self._build_order(parsed.order, dimensions, metrics, resolver)
        if order_clauses:
            query = query.order_by(*order_clauses)
        query = self._apply_limit(query, parsed.limit, parsed.offset)

        sql = query.sql(dialect=dialect)
        self._logger.debug("Compiled semantic query for %s: %s", model.id, sql)
        return CompiledQuery(
            sql=sql,
            args=args,
            model_id=model.id,
            metadata=self._build_metadata(dimensions, metrics),
        )

    @staticmethod
    def _parse_request(request: SemanticQueryRequest | Mapping[str, Any]) -> SemanticQueryRequest:
        if isinstance(request, SemanticQueryRequest):
            return request
        try:
            return SemanticQueryRequest.model_validate(request)
        except ValidationError as exc:
            raise InvalidRequest(f"Invalid semantic query: {exc}") from exc

    @staticmethod
    def _column_expression(column_name: str) -> exp.Column:
        parts = column_name.split(".")
        if len(parts) == 1:
            return exp.column(parts[0], quoted=True)
        return exp.column(parts[-1], table=parts[-2], quoted=True)

    def _build_selects(
        self,
        dimensions: Sequence[DimensionRef],
        metrics: Sequence[MetricRef],
        dialect: str,
    ) -> Tuple[List[exp.Expression], List[exp.Expression]]:
        select_clauses: List[exp.Expression] = []
        group_by_expressions: List[exp.Expression] = []

        for dimension in dimensions:
            column = self._column_expression(dimension.column)
            select_clauses.append(exp.alias_(column, dimension.name, quoted=True))
            group_by_expressions.append(column.copy())

        for metric in metrics:
            formula = parse_formula(metric.formula, dialect=dialect)
            select_clauses.append(exp.alias_(formula, metric.name, quoted=True))

        return select_clauses, group_by_expressions

    def _build_filters(
        self,
        resolver: SemanticModelResolver,
        filters: Mapping[str, FilterValue],
    ) -> Tuple[List[exp.Expression], Dict[str, Any]]:
        conditions: List[exp.Expression] = []
        args: Dict[str, Any] = {}
        for name, value in filters.items():
            dimension = resolver.resolve_dimension(name)
            column = self._column_expression(dimension.column)
            if value is None:
                conditions.append(exp.Is(this=column, expression=exp.Null()))
                continue
            param = f"p{len(args)}"
            args[param] = value
            conditions.append(exp.EQ(this=column, expression=_bind_placeholder(param)))
        return conditions, args

    def _build_order(
        self,
        order: Sequence[OrderItem],
        dimensions: Sequence[DimensionRef],
        metrics: Sequence[MetricRef],
        resolver: SemanticModelResolver,
    ) -> List[exp.Expression]:
        selected = {dimension.name for dimension in dimensions} | {metric.name for metric in metrics}
        clauses: List[exp.Expression] = []
        for item in order:
            if item.field not in selected:
                if not (resolver.is_dimension(item.field) or resolver.is_metric(item.field)):
                    resolver.resolve_dimension(item.field)
                raise InvalidRequest(f"Cannot order by '{item.field}' because it is not selected.")
            clauses.append(
                exp.Ordered(
                    this=exp.Identifier(this=item.field, quoted=True),
                    desc=item.direction == "desc",
                )
            )
        return clauses

    @staticmethod
    def _apply_limit(query: exp.Select, limit: Optional[int], offset: Optional[int]) -> exp.Select:
        if limit is None and not offset:
            return query
        query = query.limit(_UNBOUNDED_LIMIT if limit is None else limit)
        if offset:
            query = query.offset(offset)
        return query

    @staticmethod
    def _build_metadata(
        dimensions: Sequence[DimensionRef],
        metrics: Sequence[MetricRef],
    ) -> List[Dict[str, Optional[str]]]:
        metadata: List[Dict[str, Optional[str]]] = []
        for dimension in dimensions:
            metadata.append(
                {
                    "column": dimension.name,
                    "name": dimension.name,
                    "kind": "dimension",
                    "source": dimension.column,
                    "dataType": dimension.data_type,
                }
            )
        for metric in metrics:
            metadata.append(
                {
                    "column": metric.name,
                    "name": metric.name,
                    "kind": "metric",
                    "source": metric.formula,
                    "dataType": None,
                }
            )
        return metadata
