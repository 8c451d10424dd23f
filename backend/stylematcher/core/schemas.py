from enum import Enum
from pydantic import BaseModel, Field, field_serializer
from typing import List, Optional, Any, Dict
from stylematcher.core.vegalite import RenderSpec

Row = Dict[str, Any]


class ColumnKind(str, Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    DATETIME = "datetime"
    BOOLEAN = "boolean"  # reserved, the classifier never assigns it


class ColumnProfile(BaseModel):
    name: str
    kind: ColumnKind
    distinct_count: int


class ChartSuggestion(BaseModel):
    id: str  # 'chart-1', 'chart-2', ... dense over accepted suggestions
    title: str
    chart_kind: str  # free-form label, e.g. 'Bar Chart'
    rationale: str
    columns_used: List[str]
    alternatives: List[str] = []
    render_spec: RenderSpec  # The Vega-Lite spec
    caveat: Optional[str] = None

    @field_serializer("render_spec")
    def _dump_render_spec(self, spec: RenderSpec) -> Dict[str, Any]:
        return spec.to_vega()


class StyleDetection(BaseModel):
    detected_label: str
    confidence: float = Field(ge=0, le=1)
    sample_data: List[Row] = []
    summary: str


class ClassificationRequest(BaseModel):
    rows: List[Row]


class ClassificationResponse(BaseModel):
    columns: List[ColumnProfile]


class SuggestionRequest(BaseModel):
    rows: List[Row]
    preferred_style: Optional[str] = None


class SuggestionResponse(BaseModel):
    columns: List[ColumnProfile]
    suggestions: List[ChartSuggestion]
    preferred_style: Optional[str] = None


class AnalysisResult(BaseModel):
    filename: str
    row_count: int
    columns: List[ColumnProfile]
    suggestions: List[ChartSuggestion]
    preferred_style: Optional[str] = None
    detected_style: Optional[StyleDetection] = None  # Only when a reference image was sent
    dataset: List[Row]
