"""
Unit tests for the Vega-Lite builders and records.
"""
import pytest
from pydantic import ValidationError
from stylematcher.core.schemas import ChartSuggestion
from stylematcher.core.vegalite import FieldDef, MarkDef, ValueDef, VEGA_LITE_SCHEMA
from stylematcher.services.generator import (
    COLORS,
    constant,
    density,
    encode,
    field_ref,
    hconcat_chart,
    layered_chart,
    mark,
    nominal,
    quantitative,
    temporal,
    unit_chart,
    untyped,
    view,
)

ROWS = [{"Category": "Books", "Value": 3}, {"Category": "Sports", "Value": 5}]


@pytest.mark.unit
@pytest.mark.parametrize("name,expected", [
    ("Revenue", "Revenue"),
    ("price.usd", "price\\.usd"),
    ("a[0]", "a\\[0\\]"),
    ("it's", "it\\'s"),
    ('say "hi"', 'say \\"hi\\"'),
    ("back\\slash", "back\\\\slash"),
    ("", ""),
])
def test_field_ref_escaping(name, expected):
    assert field_ref(name) == expected


@pytest.mark.unit
def test_unit_chart_shape():
    spec = unit_chart(ROWS, mark("bar", tooltip=True), encode(
        x=nominal("Category"),
        y=quantitative("Value", aggregate="sum"),
    )).to_vega()
    assert spec == {
        "$schema": VEGA_LITE_SCHEMA,
        "data": {"values": ROWS},
        "mark": {"type": "bar", "tooltip": True},
        "encoding": {
            "x": {"field": "Category", "type": "nominal"},
            "y": {"field": "Value", "type": "quantitative", "aggregate": "sum"},
        },
    }


@pytest.mark.unit
def test_unset_properties_are_omitted():
    spec = nominal("Category").to_vega()
    assert spec == {"field": "Category", "type": "nominal"}


@pytest.mark.unit
def test_explicit_none_guides_become_null():
    assert nominal("Category", legend=None).to_vega() == {"field": "Category", "type": "nominal", "legend": None}
    assert untyped("Category", axis=None).to_vega() == {"field": "Category", "axis": None}


@pytest.mark.unit
def test_aggregate_only_channel():
    assert untyped(aggregate="count").to_vega() == {"aggregate": "count"}


@pytest.mark.unit
def test_encode_drops_absent_channels():
    encoding = encode(x=temporal("Month"), color=None)
    assert encoding.to_vega() == {"x": {"field": "Month", "type": "temporal"}}


@pytest.mark.unit
def test_constant_channel():
    assert constant(COLORS["green"]).to_vega() == {"value": "#10b981"}


@pytest.mark.unit
def test_density_transform():
    spec = unit_chart(
        ROWS, mark("area"),
        encode(x=quantitative("value"), y=quantitative("density")),
        transform=[density("Value")],
    ).to_vega()
    assert spec["transform"] == [{"density": "Value"}]


@pytest.mark.unit
def test_layered_chart():
    spec = layered_chart(
        ROWS,
        layers=[view(mark("line")), view(mark("text"), encode(text=quantitative("Value")))],
        encoding=encode(x=nominal("Category")),
        resolve={"scale": {"y": "independent"}},
    ).to_vega()
    assert spec["layer"][0] == {"mark": {"type": "line"}}
    assert spec["layer"][1]["encoding"] == {"text": {"field": "Value", "type": "quantitative"}}
    assert spec["encoding"] == {"x": {"field": "Category", "type": "nominal"}}
    assert "mark" not in spec


@pytest.mark.unit
def test_hconcat_chart():
    spec = hconcat_chart(ROWS, views=[view(mark("bar"), title="Left"), view(mark("bar"))], spacing=0).to_vega()
    assert spec["hconcat"][0] == {"mark": {"type": "bar"}, "title": "Left"}
    assert spec["spacing"] == 0


@pytest.mark.unit
def test_records_reject_unknown_properties():
    with pytest.raises(ValidationError):
        MarkDef(type="bar", glow=True)
    with pytest.raises(ValidationError):
        MarkDef(type="sparkline")
    with pytest.raises(ValidationError):
        FieldDef(field="a", type="fuzzy")


@pytest.mark.unit
def test_render_spec_roundtrips_through_suggestion():
    """Dumping and re-validating a suggestion keeps the spec's exact shape."""
    spec = unit_chart(ROWS, mark("bar"), encode(
        x=nominal("Category"),
        color=untyped("Category", legend=None),
        y=constant(1),
    ))
    suggestion = ChartSuggestion(
        id="chart-1", title="t", chart_kind="Bar Chart", rationale="r",
        columns_used=["Category"], render_spec=spec,
    )
    dumped = suggestion.model_dump()
    restored = ChartSuggestion.model_validate(dumped)
    assert restored.model_dump()["render_spec"] == spec.to_vega()
    assert isinstance(restored.render_spec.encoding.y, ValueDef)
