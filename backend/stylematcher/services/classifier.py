"""
Column type classifier.

A fast heuristic that assigns a semantic kind to every column of a
row-oriented dataset. It is deliberately permissive: values are tested one
by one and the column kind is decided by ratios, not by a strict schema.
"""
import logging
import math
import numbers
from datetime import date, datetime
from typing import Any, Dict, List, Sequence
from dateutil import parser as dateparser
from stylematcher.core.schemas import ColumnKind, ColumnProfile, Row
from stylematcher.core.performance import track_performance

logger = logging.getLogger(__name__)

# A column must clear this share of numeric (or date-like) values
KIND_RATIO_THRESHOLD = 0.8

# Fixed fill-in for partial dates ("3", "March") so results don't depend on today
_DATE_DEFAULT = datetime(2000, 1, 1)


def is_defined(value: Any) -> bool:
    """Nulls, absent keys and empty strings don't count as data."""
    return value is not None and not (isinstance(value, str) and value == '')


def is_numeric_value(value: Any) -> bool:
    """
    True for finite real numbers and strings that parse to one.

    Booleans are never numeric even though Python treats them as ints.
    """
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Real):
        return math.isfinite(value)
    if isinstance(value, str):
        text = value.strip()
        # float() accepts digit separators ("1_000"), we don't
        if not text or '_' in text:
            return False
        try:
            return math.isfinite(float(text))
        except ValueError:
            return False
    return False


def is_date_value(value: Any) -> bool:
    """
    Lenient "is this plausibly a date" test.

    Anything ``dateutil`` can read is accepted: ISO dates, "Jan 5 2024",
    "05/01/2024", bare month names, even small integers (read as a day of
    month). Numbers are resolved by the numeric-first rule in
    ``classify_columns``, not here.
    """
    if isinstance(value, (datetime, date)):
        return True
    if isinstance(value, bool) or value is None:
        return False
    text = str(value).strip()
    if not text:
        return False
    try:
        dateparser.parse(text, default=_DATE_DEFAULT)
    except (ValueError, OverflowError):
        return False
    return True


def _distinct_key(value: Any):
    # Keep True apart from 1 and False apart from 0
    try:
        hash(value)
    except TypeError:
        return ('unhashable', repr(value))
    return (isinstance(value, bool), value)


def infer_kind(defined: Sequence[Any]) -> ColumnKind:
    """Decide a column kind from its defined values."""
    total = len(defined)
    if total == 0:
        return ColumnKind.CATEGORICAL

    numeric_count = sum(1 for v in defined if is_numeric_value(v))
    date_count = sum(1 for v in defined if is_date_value(v))

    if numeric_count / total > KIND_RATIO_THRESHOLD:
        return ColumnKind.NUMERIC
    if date_count / total > KIND_RATIO_THRESHOLD and date_count > numeric_count:
        return ColumnKind.DATETIME
    return ColumnKind.CATEGORICAL


@track_performance("classify_columns")
def classify_columns(rows: Sequence[Row]) -> Dict[str, ColumnProfile]:
    """
    Profile every column of ``rows``.

    The column set is taken from the keys of the first row; later rows may
    omit keys (read as null) or carry extra keys (ignored).

    Returns:
        Mapping of column name to profile, in first-row key order.
        Empty when there are no rows.
    """
    if not rows:
        return {}

    profiles: Dict[str, ColumnProfile] = {}
    for name in rows[0].keys():
        defined: List[Any] = [row.get(name) for row in rows if is_defined(row.get(name))]
        distinct_count = len({_distinct_key(v) for v in defined})
        kind = infer_kind(defined)
        profiles[name] = ColumnProfile(name=str(name), kind=kind, distinct_count=distinct_count)

    logger.debug(
        f"Classified {len(profiles)} columns over {len(rows)} rows: "
        + ", ".join(f"{p.name}={p.kind.value}" for p in profiles.values())
    )
    return profiles
