"""
Typed records for the subset of the Vega-Lite v5 grammar we emit.

Every record dumps only the properties that were explicitly set, so an
explicit ``legend=None`` or ``axis=None`` is rendered as JSON ``null``
(Vega-Lite's way of hiding a guide) while untouched properties are
omitted entirely.
"""
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

VEGA_LITE_SCHEMA = "https://vega.github.io/schema/vega-lite/v5.json"

MarkType = Literal["bar", "line", "area", "arc", "rect", "circle", "boxplot", "text"]
FieldType = Literal["quantitative", "nominal", "temporal", "ordinal"]


class VegaModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_vega(self) -> Dict[str, Any]:
        """Dump as a plain Vega-Lite JSON object."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class MarkDef(VegaModel):
    type: MarkType
    tooltip: Optional[bool] = None
    point: Optional[bool] = None
    color: Optional[str] = None
    stroke: Optional[str] = None
    innerRadius: Optional[float] = None
    outerRadius: Optional[float] = None
    radiusOffset: Optional[float] = None
    cornerRadiusEnd: Optional[float] = None
    extent: Optional[str] = None
    align: Optional[str] = None


class ScaleDef(VegaModel):
    type: Optional[str] = None
    zero: Optional[bool] = None
    rangeMin: Optional[float] = None


class FieldDef(VegaModel):
    """A field-bound (or aggregate-only) encoding channel."""
    field: Optional[str] = None
    type: Optional[FieldType] = None
    aggregate: Optional[str] = None
    bin: Optional[bool] = None
    stack: Optional[Union[bool, str]] = None
    sort: Optional[str] = None
    scale: Optional[ScaleDef] = None
    legend: Optional[Dict[str, Any]] = None
    axis: Optional[Dict[str, Any]] = None


class ValueDef(VegaModel):
    """A constant encoding channel."""
    value: Union[str, float]


Channel = Union[FieldDef, ValueDef]


class Encoding(VegaModel):
    x: Optional[Channel] = None
    y: Optional[Channel] = None
    xOffset: Optional[Channel] = None
    color: Optional[Channel] = None
    size: Optional[Channel] = None
    theta: Optional[Channel] = None
    radius: Optional[Channel] = None
    text: Optional[Channel] = None
    row: Optional[Channel] = None


class DensityTransform(VegaModel):
    density: str


Transform = DensityTransform


class InlineData(VegaModel):
    values: List[Dict[str, Any]]


class UnitSpec(VegaModel):
    """A single view: one mark plus its encodings."""
    mark: Optional[MarkDef] = None
    encoding: Optional[Encoding] = None
    transform: Optional[List[Transform]] = None
    title: Optional[str] = None
    width: Optional[int] = None
    view: Optional[Dict[str, Any]] = None


class TopLevelUnitSpec(UnitSpec):
    schema_: str = Field(alias="$schema")
    data: InlineData


class TopLevelLayerSpec(VegaModel):
    schema_: str = Field(alias="$schema")
    data: InlineData
    layer: List[UnitSpec]
    encoding: Optional[Encoding] = None
    resolve: Optional[Dict[str, Any]] = None


class TopLevelHConcatSpec(VegaModel):
    schema_: str = Field(alias="$schema")
    data: InlineData
    hconcat: List[UnitSpec]
    spacing: Optional[float] = None


RenderSpec = Union[TopLevelUnitSpec, TopLevelLayerSpec, TopLevelHConcatSpec]
