"""
Metrics endpoint for performance monitoring.
"""
from fastapi import APIRouter
from stylematcher.core.performance import PerformanceMonitor

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """Duration statistics (count, min, max, mean, p50/p95/p99) per tracked operation."""
    return {'performance': PerformanceMonitor.get_all_metrics()}
