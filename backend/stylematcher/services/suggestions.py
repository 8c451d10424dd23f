"""
Chart suggestion service.

Turns a dataset into an ordered list of chart suggestions using a fixed
catalog of deterministic rules. Each rule is a record: a gate over how many
numeric / categorical / datetime columns exist, and a builder that picks
columns by position and produces a bound Vega-Lite spec.

After the catalog runs, a diversity filter drops repeated chart kinds once
more than five suggestions were accepted, and an optional preferred style
(e.g. detected from a reference image) is moved to the front.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set
from stylematcher.core.schemas import ChartSuggestion, ColumnKind, ColumnProfile, Row
from stylematcher.core.vegalite import RenderSpec
from stylematcher.core.performance import track_performance
from stylematcher.services.classifier import classify_columns
from stylematcher.services.generator import (
    COLORS,
    constant,
    density,
    encode,
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

logger = logging.getLogger(__name__)

# Once more than this many suggestions are in, repeated kinds are dropped
DIVERSITY_WINDOW = 5

DONUT_MAX_DISTINCT = 8
PIE_MAX_DISTINCT = 6


@dataclass
class ColumnPartitions:
    """Column profiles split by kind, each list in source column order."""
    rows: Sequence[Row]
    numeric: List[ColumnProfile]
    categorical: List[ColumnProfile]
    datetime: List[ColumnProfile]

    @classmethod
    def from_profiles(cls, rows: Sequence[Row], profiles: Sequence[ColumnProfile]) -> "ColumnPartitions":
        return cls(
            rows=rows,
            numeric=[p for p in profiles if p.kind == ColumnKind.NUMERIC],
            categorical=[p for p in profiles if p.kind == ColumnKind.CATEGORICAL],
            datetime=[p for p in profiles if p.kind == ColumnKind.DATETIME],
        )


def column_at(columns: Sequence[ColumnProfile], index: int, fallback: int = 0) -> Optional[ColumnProfile]:
    """
    Positional column access that never faults.

    Returns ``columns[index]`` when it exists, otherwise ``columns[fallback]``,
    otherwise None (empty partition).
    """
    if 0 <= index < len(columns):
        return columns[index]
    if 0 <= fallback < len(columns):
        return columns[fallback]
    return None


def first_with_few_values(columns: Sequence[ColumnProfile], limit: int) -> ColumnProfile:
    """First column with fewer than ``limit`` distinct values, else the first column."""
    return next((c for c in columns if c.distinct_count < limit), columns[0])


@dataclass(frozen=True)
class ColumnRequirement:
    """Minimum column counts per kind for a rule to fire."""
    numeric: int = 0
    categorical: int = 0
    datetime: int = 0

    def satisfied_by(self, cols: ColumnPartitions) -> bool:
        return (
            len(cols.numeric) >= self.numeric
            and len(cols.categorical) >= self.categorical
            and len(cols.datetime) >= self.datetime
        )


@dataclass
class SuggestionDraft:
    """A rule's output before it is accepted and given an id."""
    title: str
    rationale: str
    columns_used: List[str]
    render_spec: RenderSpec
    alternatives: List[str] = field(default_factory=list)
    caveat: Optional[str] = None


@dataclass(frozen=True)
class ChartRule:
    chart_kind: str
    requires: ColumnRequirement
    build: Callable[[ColumnPartitions], SuggestionDraft]

    def evaluate(self, cols: ColumnPartitions) -> Optional[SuggestionDraft]:
        if not self.requires.satisfied_by(cols):
            return None
        return self.build(cols)


# --- Rule builders (catalog order) ---

def _bubble(cols: ColumnPartitions) -> SuggestionDraft:
    x, y = cols.numeric[0], cols.numeric[1]
    size = column_at(cols.numeric, 2)
    cat = cols.categorical[0]
    return SuggestionDraft(
        title=f"Multivariate Analysis: {x.name} vs {y.name}",
        rationale=f"High-dimensional view relating {x.name}, {y.name}, and {cat.name}.",
        columns_used=[x.name, y.name, size.name, cat.name],
        alternatives=['Scatter Plot'],
        render_spec=unit_chart(
            cols.rows,
            mark('circle'),
            encode(
                x=quantitative(x.name),
                y=quantitative(y.name),
                size=quantitative(size.name),
                color=nominal(cat.name),
            ),
        ),
    )


def _heatmap(cols: ColumnPartitions) -> SuggestionDraft:
    c0, c1 = cols.categorical[0], cols.categorical[1]
    num = cols.numeric[0]
    return SuggestionDraft(
        title="Heatmap Distribution",
        rationale=f"Intensity of {num.name} across {c0.name} and {c1.name}.",
        columns_used=[c0.name, c1.name, num.name],
        alternatives=['Grouped Bar Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('rect'),
            encode(
                x=nominal(c0.name),
                y=nominal(c1.name),
                color=quantitative(num.name, aggregate='mean'),
            ),
        ),
    )


def _stacked_bar(cols: ColumnPartitions) -> SuggestionDraft:
    c0, c1 = cols.categorical[0], cols.categorical[1]
    num = cols.numeric[0]
    return SuggestionDraft(
        title=f"Composition by {c0.name}",
        rationale=f"Breakdown of {num.name} by {c0.name} subdivisions.",
        columns_used=[c0.name, c1.name, num.name],
        alternatives=['Grouped Bar Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('bar', tooltip=True),
            encode(
                x=nominal(c0.name),
                y=quantitative(num.name, aggregate='sum'),
                color=nominal(c1.name),
            ),
        ),
    )


def _line(cols: ColumnPartitions) -> SuggestionDraft:
    when, num = cols.datetime[0], cols.numeric[0]
    cat = column_at(cols.categorical, 0)
    return SuggestionDraft(
        title="Trend over Time",
        rationale=f"Temporal evolution of {num.name}.",
        columns_used=[when.name, num.name] + ([cat.name] if cat else []),
        alternatives=['Area Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('line', point=True),
            encode(
                x=temporal(when.name),
                y=quantitative(num.name),
                color=nominal(cat.name) if cat else None,
            ),
        ),
    )


def _grouped_bar(cols: ColumnPartitions) -> SuggestionDraft:
    c0, c1 = cols.categorical[0], cols.categorical[1]
    num = cols.numeric[0]
    return SuggestionDraft(
        title="Side-by-Side Comparison",
        rationale=f"Direct comparison of {num.name} across groups.",
        columns_used=[c0.name, c1.name, num.name],
        alternatives=['Stacked Bar Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('bar', tooltip=True),
            encode(
                x=nominal(c0.name),
                y=quantitative(num.name, aggregate='sum'),
                xOffset=untyped(c1.name),
                color=untyped(c1.name),
            ),
        ),
    )


def _scatter(cols: ColumnPartitions) -> SuggestionDraft:
    n1, n2 = cols.numeric[0], cols.numeric[1]
    cat = column_at(cols.categorical, 0)
    return SuggestionDraft(
        title=f"{n1.name} vs {n2.name}",
        rationale=f"Correlation between {n1.name} and {n2.name}.",
        columns_used=[n1.name, n2.name],
        alternatives=['Bubble Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('circle'),
            encode(
                x=quantitative(n1.name, scale={'zero': False}),
                y=quantitative(n2.name, scale={'zero': False}),
                color=untyped(cat.name) if cat else None,
            ),
        ),
    )


def _boxplot(cols: ColumnPartitions) -> SuggestionDraft:
    num = cols.numeric[0]
    cat = column_at(cols.categorical, 0)
    return SuggestionDraft(
        title=f"Statistical Distribution of {num.name}",
        rationale=f"Quartiles and median of {num.name}.",
        columns_used=[num.name] + ([cat.name] if cat else []),
        alternatives=['Violin Plot'],
        render_spec=unit_chart(
            cols.rows,
            mark('boxplot', extent='min-max'),
            encode(
                x=nominal(cat.name) if cat else None,
                y=quantitative(num.name),
                color=untyped(cat.name) if cat else constant(COLORS['green']),
            ),
        ),
    )


def _donut(cols: ColumnPartitions) -> SuggestionDraft:
    cat = first_with_few_values(cols.categorical, DONUT_MAX_DISTINCT)
    num = cols.numeric[0]
    return SuggestionDraft(
        title=f"{cat.name} Share",
        rationale=f"Market share/proportion of {cat.name}.",
        columns_used=[cat.name, num.name],
        alternatives=['Bar Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('arc', innerRadius=50),
            encode(
                theta=untyped(num.name, aggregate='sum'),
                color=nominal(cat.name),
            ),
        ),
    )


def _histogram(cols: ColumnPartitions) -> SuggestionDraft:
    target = column_at(cols.numeric, 1)
    return SuggestionDraft(
        title=f"Frequency of {target.name}",
        rationale=f"Distribution spread of {target.name}.",
        columns_used=[target.name],
        alternatives=['Density Plot'],
        render_spec=unit_chart(
            cols.rows,
            mark('bar'),
            encode(
                x=untyped(target.name, bin=True),
                y=untyped(aggregate='count'),
                color=constant(COLORS['violet']),
            ),
        ),
    )


def _stacked_area(cols: ColumnPartitions) -> SuggestionDraft:
    when, num, cat = cols.datetime[0], cols.numeric[0], cols.categorical[0]
    return SuggestionDraft(
        title="Volume Trends by Category",
        rationale=f"Evolution of {num.name} breakdown over time.",
        columns_used=[when.name, num.name, cat.name],
        alternatives=['Streamgraph'],
        render_spec=unit_chart(
            cols.rows,
            mark('area'),
            encode(
                x=temporal(when.name),
                y=quantitative(num.name, stack='normalize'),
                color=untyped(cat.name),
            ),
        ),
    )


def _bar(cols: ColumnPartitions) -> SuggestionDraft:
    cat, num = cols.categorical[0], cols.numeric[0]
    return SuggestionDraft(
        title=f"{num.name} by {cat.name}",
        rationale=f"Simple comparison of {num.name}.",
        columns_used=[cat.name, num.name],
        alternatives=['Lollipop Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('bar', cornerRadiusEnd=4),
            encode(
                x=nominal(cat.name, sort='-y'),
                y=quantitative(num.name),
                color=untyped(cat.name, legend=None),
            ),
        ),
    )


def _density(cols: ColumnPartitions) -> SuggestionDraft:
    num = cols.numeric[0]
    return SuggestionDraft(
        title=f"{num.name} Density Curve",
        rationale="Smoothed probability distribution.",
        columns_used=[num.name],
        alternatives=['Histogram'],
        render_spec=unit_chart(
            cols.rows,
            mark('area'),
            encode(
                x=quantitative('value'),
                y=quantitative('density'),
                color=constant(COLORS['pink']),
            ),
            transform=[density(num.name)],
        ),
    )


def _pie(cols: ColumnPartitions) -> SuggestionDraft:
    cat = first_with_few_values(cols.categorical, PIE_MAX_DISTINCT)
    num = cols.numeric[0]
    return SuggestionDraft(
        title=f"{cat.name} Distribution",
        rationale=f"Classic part-to-whole comparison for {cat.name}.",
        columns_used=[cat.name, num.name],
        alternatives=['Donut Chart', 'Bar Chart'],
        caveat="Hard to compare slice sizes accurately.",
        render_spec=unit_chart(
            cols.rows,
            mark('arc', outerRadius=80),
            encode(
                theta=untyped(num.name, aggregate='sum'),
                color=nominal(cat.name),
            ),
        ),
    )


def _area(cols: ColumnPartitions) -> SuggestionDraft:
    when, num = cols.datetime[0], cols.numeric[0]
    return SuggestionDraft(
        title="Volume over Time",
        rationale=f"Emphasizes the magnitude of change in {num.name} over time.",
        columns_used=[when.name, num.name],
        alternatives=['Line Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('area'),
            encode(x=temporal(when.name), y=quantitative(num.name)),
        ),
    )


def _normalized_bar(cols: ColumnPartitions) -> SuggestionDraft:
    c0, c1 = cols.categorical[0], cols.categorical[1]
    num = cols.numeric[0]
    return SuggestionDraft(
        title=f"Relative Proportions by {c0.name}",
        rationale=f"Compare relative percentage of {c1.name} within each {c0.name}.",
        columns_used=[c0.name, c1.name, num.name],
        alternatives=['Stacked Bar Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('bar'),
            encode(
                x=nominal(c0.name),
                y=quantitative(num.name, aggregate='sum', stack='normalize'),
                color=untyped(c1.name),
            ),
        ),
    )


def _normalized_area(cols: ColumnPartitions) -> SuggestionDraft:
    when, num, cat = cols.datetime[0], cols.numeric[0], cols.categorical[0]
    return SuggestionDraft(
        title="Relative Trend Contribution",
        rationale=f"Show how the contribution of each {cat.name} changes over time (normalized).",
        columns_used=[when.name, num.name, cat.name],
        alternatives=['Stacked Area Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('area'),
            encode(
                x=temporal(when.name),
                y=quantitative(num.name, stack='normalize'),
                color=untyped(cat.name),
            ),
        ),
    )


def _radial_bar(cols: ColumnPartitions) -> SuggestionDraft:
    cat, num = cols.categorical[0], cols.numeric[0]
    return SuggestionDraft(
        title=f"Radial View: {num.name}",
        rationale=f"Aesthetic variation for comparing {num.name} by {cat.name}.",
        columns_used=[cat.name, num.name],
        alternatives=['Bar Chart', 'Donut Chart'],
        render_spec=layered_chart(
            cols.rows,
            layers=[
                view(mark('arc', innerRadius=20, stroke=COLORS['white'])),
                view(
                    mark('text', radiusOffset=10),
                    encode(
                        text=quantitative(num.name),
                        color=constant(COLORS['black']),
                    ),
                ),
            ],
            encoding=encode(
                theta=quantitative(num.name, stack=True),
                radius=untyped(num.name, scale={'type': 'sqrt', 'zero': True, 'rangeMin': 20}),
                color=nominal(cat.name, legend=None),
            ),
        ),
    )


def _trellis_bar(cols: ColumnPartitions) -> SuggestionDraft:
    c0, c1 = cols.categorical[0], cols.categorical[1]
    num = cols.numeric[0]
    return SuggestionDraft(
        title=f"Distribution across {c1.name}",
        rationale=f"Small multiples to compare {num.name} by {c0.name} for each {c1.name}.",
        columns_used=[c0.name, c1.name, num.name],
        alternatives=['Grouped Bar Chart'],
        render_spec=unit_chart(
            cols.rows,
            mark('bar'),
            encode(
                x=nominal(c0.name),
                y=quantitative(num.name, aggregate='sum'),
                color=untyped(c0.name, legend=None),
                row=untyped(c1.name),
            ),
        ),
    )


def _dual_axis(cols: ColumnPartitions) -> SuggestionDraft:
    when = cols.datetime[0]
    n0, n1 = cols.numeric[0], cols.numeric[1]
    return SuggestionDraft(
        title=f"Dual Metrics: {n0.name} & {n1.name}",
        rationale=f"Compare trends of two different scales ({n0.name} and {n1.name}) over time.",
        columns_used=[when.name, n0.name, n1.name],
        alternatives=['Line Chart'],
        render_spec=layered_chart(
            cols.rows,
            layers=[
                view(mark('line', color=COLORS['green']), encode(y=quantitative(n0.name))),
                view(mark('line', color=COLORS['blue']), encode(y=quantitative(n1.name))),
            ],
            encoding=encode(x=temporal(when.name)),
            resolve={'scale': {'y': 'independent'}},
        ),
    )


def _pyramid(cols: ColumnPartitions) -> SuggestionDraft:
    cat = cols.categorical[0]
    n0, n1 = cols.numeric[0], cols.numeric[1]
    return SuggestionDraft(
        title="Population Pyramid Style",
        rationale=f"Compare distributions of {n0.name} and {n1.name} side-by-side.",
        columns_used=[cat.name, n0.name, n1.name],
        alternatives=['Grouped Bar Chart'],
        render_spec=hconcat_chart(
            cols.rows,
            views=[
                view(
                    mark('bar', color=COLORS['red']),
                    encode(
                        y=untyped(cat.name, axis=None),
                        x=untyped(n0.name, aggregate='sum', sort='descending'),
                    ),
                    title=n0.name,
                ),
                view(
                    mark('text', align='center'),
                    encode(
                        y=nominal(cat.name, axis=None),
                        text=untyped(cat.name),
                    ),
                    width=20,
                    view={'stroke': None},
                ),
                view(
                    mark('bar', color=COLORS['blue']),
                    encode(
                        y=untyped(cat.name, axis=None),
                        x=untyped(n1.name, aggregate='sum'),
                    ),
                    title=n1.name,
                ),
            ],
            spacing=0,
        ),
    )


CHART_RULES: List[ChartRule] = [
    ChartRule('Bubble Chart', ColumnRequirement(numeric=2, categorical=1), _bubble),
    ChartRule('Heatmap', ColumnRequirement(numeric=1, categorical=2), _heatmap),
    ChartRule('Stacked Bar Chart', ColumnRequirement(numeric=1, categorical=2), _stacked_bar),
    ChartRule('Line Chart', ColumnRequirement(numeric=1, datetime=1), _line),
    ChartRule('Grouped Bar Chart', ColumnRequirement(numeric=1, categorical=2), _grouped_bar),
    ChartRule('Scatter Plot', ColumnRequirement(numeric=2), _scatter),
    ChartRule('Boxplot', ColumnRequirement(numeric=1), _boxplot),
    ChartRule('Donut Chart', ColumnRequirement(numeric=1, categorical=1), _donut),
    ChartRule('Histogram', ColumnRequirement(numeric=1), _histogram),
    ChartRule('Stacked Area Chart', ColumnRequirement(numeric=1, categorical=1, datetime=1), _stacked_area),
    ChartRule('Bar Chart', ColumnRequirement(numeric=1, categorical=1), _bar),
    ChartRule('Density Plot', ColumnRequirement(numeric=1), _density),
    ChartRule('Pie Chart', ColumnRequirement(numeric=1, categorical=1), _pie),
    ChartRule('Area Chart', ColumnRequirement(numeric=1, datetime=1), _area),
    ChartRule('100% Stacked Bar Chart', ColumnRequirement(numeric=1, categorical=2), _normalized_bar),
    ChartRule('100% Stacked Area Chart', ColumnRequirement(numeric=1, categorical=1, datetime=1), _normalized_area),
    ChartRule('Radial Bar Chart', ColumnRequirement(numeric=1, categorical=1), _radial_bar),
    ChartRule('Trellis Bar Chart', ColumnRequirement(numeric=1, categorical=2), _trellis_bar),
    ChartRule('Dual Axis Chart', ColumnRequirement(numeric=2, datetime=1), _dual_axis),
    ChartRule('Pyramid Chart', ColumnRequirement(numeric=2, categorical=1), _pyramid),
]


class _SuggestionCollector:
    """Per-call accumulator: assigns ids and enforces chart-kind diversity."""

    def __init__(self):
        self.suggestions: List[ChartSuggestion] = []
        self._used_kinds: Set[str] = set()

    def offer(self, chart_kind: str, draft: SuggestionDraft) -> None:
        if chart_kind in self._used_kinds and len(self.suggestions) > DIVERSITY_WINDOW:
            logger.debug(f"Dropped repeated chart kind: {chart_kind}")
            return

        self.suggestions.append(ChartSuggestion(
            id=f"chart-{len(self.suggestions) + 1}",
            title=draft.title,
            chart_kind=chart_kind,
            rationale=draft.rationale,
            columns_used=draft.columns_used,
            alternatives=draft.alternatives,
            render_spec=draft.render_spec,
            caveat=draft.caveat,
        ))
        self._used_kinds.add(chart_kind)


def normalize_style(label: str) -> str:
    """'Bar Chart' -> 'bar', 'Density Plot' -> 'density'."""
    return label.lower().replace(' chart', '', 1).replace(' plot', '', 1)


def prioritize_style(suggestions: List[ChartSuggestion], preferred_style: str) -> List[ChartSuggestion]:
    """
    Move suggestions matching ``preferred_style`` to the front.

    Stable partition: matches keep their catalog order, and so do the rest.
    When anything matched, the new first suggestion is annotated.
    """
    target = normalize_style(preferred_style)
    matches = [s for s in suggestions if normalize_style(s.chart_kind) == target]
    if not matches:
        logger.info(f"Preferred style '{preferred_style}' matched no suggestion")
        return suggestions

    others = [s for s in suggestions if normalize_style(s.chart_kind) != target]
    ordered = matches + others
    ordered[0].caveat = f"Matches your uploaded {preferred_style} style!"
    logger.info(f"Preferred style '{preferred_style}' matched {len(matches)} suggestion(s)")
    return ordered


@track_performance("generate_suggestions")
def generate_suggestions(
    rows: Sequence[Row],
    preferred_style: Optional[str] = None,
    profiles: Optional[Dict[str, ColumnProfile]] = None,
) -> List[ChartSuggestion]:
    """
    Generate chart suggestions for a dataset.

    Args:
        rows: Dataset rows (column set taken from the first row)
        preferred_style: Optional chart label to favour, e.g. "Bar Chart"
        profiles: Column profiles already computed for ``rows``

    Returns:
        Suggestions in catalog order (preferred style first when given).
        Empty for an empty dataset.
    """
    if profiles is None:
        profiles = classify_columns(rows)
    if not profiles:
        return []

    cols = ColumnPartitions.from_profiles(rows, list(profiles.values()))
    collector = _SuggestionCollector()

    for rule in CHART_RULES:
        draft = rule.evaluate(cols)
        if draft is not None:
            collector.offer(rule.chart_kind, draft)

    suggestions = collector.suggestions
    logger.info(
        f"Generated {len(suggestions)} suggestions from {len(cols.numeric)} numeric, "
        f"{len(cols.categorical)} categorical, {len(cols.datetime)} datetime columns"
    )

    if preferred_style:
        suggestions = prioritize_style(suggestions, preferred_style)

    return suggestions
