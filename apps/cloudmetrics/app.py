# apps/cloudmetrics/app.py

from fastapi import FastAPI
from prometheus_client import REGISTRY
from prometheus_fastapi_instrumentator import Instrumentator

# OTEL setup
from apps.cloudmetrics.utils.otel import setup_otel

# Routers (absolute imports)
from apps.cloudmetrics.routers.metrics_router import router as metrics_router
from apps.cloudmetrics.routers.status_router import router as status_router

# Reconcile loop
from apps.cloudmetrics.services.reconciler import cloud_metrics_manager


app = FastAPI(
    title="SmartOps Cloud Metrics",
    description="Republishes cloud provider metrics for managed redis and postgres resources",
    version="0.1.0",
)

# ------------------------------------------------------------------
# OpenTelemetry
# ------------------------------------------------------------------
setup_otel(app)

# ------------------------------------------------------------------
# Prometheus Metrics
# ------------------------------------------------------------------
# Instrument HTTP request metrics, latency, etc.
Instrumentator().instrument(app)

# Expose our explicit /metrics endpoint
app.include_router(metrics_router)


# ------------------------------------------------------------------
# Business Routers
# ------------------------------------------------------------------
app.include_router(status_router, prefix="/v1")


# ------------------------------------------------------------------
# Lifecycle Events
# ------------------------------------------------------------------
@app.on_event("startup")
async def startup_event():
    """Register catalog gauges once, then start the reconcile loop."""
    cloud_metrics_manager.reconciler.register_metrics(REGISTRY)
    await cloud_metrics_manager.start()


@app.on_event("shutdown")
async def shutdown_event():
    await cloud_metrics_manager.stop()


@app.get("/healthz")
def health_check():
    return {"status": "ok", "service": "cloudmetrics"}


if __name__ == "__main__":
    import os

    import uvicorn
    uvicorn.run(
        "apps.cloudmetrics.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8080)),
        reload=False,  # reload would register the catalog gauges twice
    )
