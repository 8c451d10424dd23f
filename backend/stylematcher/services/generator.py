"""
Vega-Lite chart specification builders.

This module turns column names and a dataset into typed Vega-Lite records
(see ``stylematcher.core.vegalite``). The suggestion rules only decide
*what* to encode; everything about how a spec is shaped lives here.
"""
from typing import Any, Dict, List, Optional, Sequence
from stylematcher.core.vegalite import (
    VEGA_LITE_SCHEMA,
    DensityTransform,
    Encoding,
    FieldDef,
    InlineData,
    MarkDef,
    TopLevelHConcatSpec,
    TopLevelLayerSpec,
    TopLevelUnitSpec,
    UnitSpec,
    ValueDef,
)

# Accent colours for single-series marks
COLORS = {
    'green': '#10b981',
    'blue': '#3b82f6',
    'violet': '#8b5cf6',
    'pink': '#ec4899',
    'red': '#ef4444',
    'white': '#fff',
    'black': 'black',
}

_UNSET = object()


def field_ref(name: str) -> str:
    """
    Escape a column name for use as a Vega-Lite field reference.

    Vega-Lite reads ``.`` and ``[]`` as nested-path accessors and chokes on
    unescaped quotes, so a flat column called ``price.usd`` must be written
    as ``price\\.usd``.
    """
    if not name:
        return name
    result = name.replace('\\', '\\\\')
    for ch in ('.', '[', ']', "'", '"'):
        result = result.replace(ch, '\\' + ch)
    return result


def _channel(field: Optional[str], type_: Optional[str], legend=_UNSET, axis=_UNSET, **props) -> FieldDef:
    kwargs: Dict[str, Any] = {k: v for k, v in props.items() if v is not None}
    if field is not None:
        kwargs['field'] = field_ref(field)
    if type_ is not None:
        kwargs['type'] = type_
    # None is meaningful for guides (hide it), so only skip when not passed
    if legend is not _UNSET:
        kwargs['legend'] = legend
    if axis is not _UNSET:
        kwargs['axis'] = axis
    return FieldDef(**kwargs)


def quantitative(field: Optional[str] = None, **props) -> FieldDef:
    return _channel(field, 'quantitative', **props)


def nominal(field: str, **props) -> FieldDef:
    return _channel(field, 'nominal', **props)


def temporal(field: str, **props) -> FieldDef:
    return _channel(field, 'temporal', **props)


def untyped(field: Optional[str] = None, **props) -> FieldDef:
    """A channel that lets Vega-Lite infer the type (or an aggregate-only channel)."""
    return _channel(field, None, **props)


def constant(value) -> ValueDef:
    return ValueDef(value=value)


def mark(type_: str, **props) -> MarkDef:
    return MarkDef(type=type_, **props)


def encode(**channels) -> Encoding:
    """Build an Encoding, dropping channels that are None (absent)."""
    return Encoding(**{k: v for k, v in channels.items() if v is not None})


def density(field: str) -> DensityTransform:
    return DensityTransform(density=field_ref(field))


def view(mark_def: Optional[MarkDef] = None, encoding: Optional[Encoding] = None, **props) -> UnitSpec:
    """A nested (non top-level) view for layer/concat compositions."""
    kwargs: Dict[str, Any] = {k: v for k, v in props.items() if v is not None}
    if mark_def is not None:
        kwargs['mark'] = mark_def
    if encoding is not None:
        kwargs['encoding'] = encoding
    return UnitSpec(**kwargs)


def _inline(rows: Sequence[Dict[str, Any]]) -> InlineData:
    return InlineData(values=list(rows))


def unit_chart(
    rows: Sequence[Dict[str, Any]],
    mark_def: MarkDef,
    encoding: Encoding,
    transform: Optional[List[DensityTransform]] = None,
) -> TopLevelUnitSpec:
    """
    Generate a single-view Vega-Lite specification bound to ``rows``.

    Args:
        rows: Dataset rows embedded inline
        mark_def: Visual mark
        encoding: Channel encodings
        transform: Optional data transforms applied before encoding
    """
    kwargs: Dict[str, Any] = {
        'schema_': VEGA_LITE_SCHEMA,
        'data': _inline(rows),
        'mark': mark_def,
        'encoding': encoding,
    }
    if transform:
        kwargs['transform'] = transform
    return TopLevelUnitSpec(**kwargs)


def layered_chart(
    rows: Sequence[Dict[str, Any]],
    layers: List[UnitSpec],
    encoding: Optional[Encoding] = None,
    resolve: Optional[Dict[str, Any]] = None,
) -> TopLevelLayerSpec:
    """Generate a layered specification; ``encoding`` is shared by all layers."""
    kwargs: Dict[str, Any] = {
        'schema_': VEGA_LITE_SCHEMA,
        'data': _inline(rows),
        'layer': layers,
    }
    if encoding is not None:
        kwargs['encoding'] = encoding
    if resolve is not None:
        kwargs['resolve'] = resolve
    return TopLevelLayerSpec(**kwargs)


def hconcat_chart(
    rows: Sequence[Dict[str, Any]],
    views: List[UnitSpec],
    spacing: Optional[float] = None,
) -> TopLevelHConcatSpec:
    """Generate a horizontally concatenated specification."""
    kwargs: Dict[str, Any] = {
        'schema_': VEGA_LITE_SCHEMA,
        'data': _inline(rows),
        'hconcat': views,
    }
    if spacing is not None:
        kwargs['spacing'] = spacing
    return TopLevelHConcatSpec(**kwargs)
