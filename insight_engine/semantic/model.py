from typing import List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, model_validator


class Dimension(BaseModel):
    name: str
    column_name: str = Field(validation_alias=AliasChoices("column_name", "columnName", "column"))
    data_type: str = Field(
        default="string",
        validation_alias=AliasChoices("data_type", "dataType", "type"),
    )
    description: Optional[str] = None


class Metric(BaseModel):
    name: str
    # authored by the model owner; only the choice of metric comes from end users
    formula: str = Field(validation_alias=AliasChoices("formula", "expression", "sql"))
    description: Optional[str] = None


class SemanticModel(BaseModel):
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    table_name: str = Field(validation_alias=AliasChoices("table_name", "tableName", "table"))
    dimensions: List[Dimension] = Field(default_factory=list)
    metrics: List[Metric] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_names(self) -> "SemanticModel":
        seen: set[str] = set()
        for kind, members in (("dimension", self.dimensions), ("metric", self.metrics)):
            for member in members:
                if member.name in seen:
                    raise ValueError(f"Duplicate {kind} name '{member.name}' in model '{self.id}'.")
                seen.add(member.name)
        return self

    def get_dimension(self, name: str) -> Optional[Dimension]:
        return next((dimension for dimension in self.dimensions if dimension.name == name), None)

    def get_metric(self, name: str) -> Optional[Metric]:
        return next((metric for metric in self.metrics if metric.name == name), None)

    def yml_dump(self) -> str:
        """Dump the semantic model to a YAML string."""

        return yaml.dump(self.model_dump(), sort_keys=False)
