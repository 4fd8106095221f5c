from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter

from ..services.reconciler import cloud_metrics_manager

router = APIRouter(
    prefix="/cloudmetrics",
    tags=["cloudmetrics"],
)


# ------------------------------------------------------------------------------
# GET /cloudmetrics/status
# ------------------------------------------------------------------------------
@router.get("/status", summary="Summary of the most recent reconcile pass.")
async def get_status() -> Dict[str, Any]:
    reconciler = cloud_metrics_manager.reconciler
    last = reconciler.last_result

    return {
        "running": cloud_metrics_manager.running,
        "watchDurationSeconds": reconciler.watch_duration_seconds,
        "passes": reconciler.passes,
        "lastPassAt": reconciler.last_pass_at,
        "lastResult": last.model_dump() if last is not None else None,
        "kinds": [t.kind.value for t in reconciler.targets],
    }
