"""
Shared fixtures. The env override runs before ``main`` is imported so the
API tests aren't throttled by the production rate limit.
"""
import os

os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

import pytest
from stylematcher.core.performance import PerformanceMonitor
from stylematcher.services.vision import set_style_detector


@pytest.fixture
def sales_rows():
    """Two categoricals, one date column and two measures."""
    regions = ["Northeast", "Pacific", "Midwest"]
    products = ["Widget", "Gadget"]
    rows = []
    for month in range(1, 7):
        for i, region in enumerate(regions):
            rows.append({
                "Region": region,
                "Product": products[(month + i) % 2],
                "Month": f"2024-{month:02d}-01",
                "Revenue": 1000 + month * 10 + i,
                "Units": 5 * month + i,
            })
    return rows


@pytest.fixture
def simple_rows():
    """One categorical and one measure."""
    return [
        {"Category": "Electronics", "Value": 120},
        {"Category": "Clothing", "Value": 80},
        {"Category": "Books", "Value": 45},
        {"Category": "Sports", "Value": 60},
    ]


@pytest.fixture(autouse=True)
def _reset_globals():
    yield
    PerformanceMonitor.clear_metrics()
    set_style_detector(None)
