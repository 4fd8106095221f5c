"""
Cloud metrics reconcile loop.

Takes a "sync the world" approach: every pass lists all redis and postgres
CRs, scrapes provider metrics for each and republishes them as catalog
gauges, then asks to run again after a fixed interval. Failures inside a
pass (listing, scraping) are logged and skipped; they never stop the
schedule.
"""

import asyncio
import contextlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from opentelemetry import trace
from prometheus_client import CollectorRegistry, Counter, Histogram

from ..config import settings
from ..models.metric_models import ReconcileRequest, ReconcileResult, ScrapeContext
from ..models.resource_models import ManagedResourceInstance, ResourceKind
from ..providers.aws import AWSPostgresMetricsProvider, AWSRedisMetricsProvider
from ..utils.logger import new_action_logger, new_controller_logger
from .dispatcher import MetricsProvider
from .gauge_publisher import publish
from .metric_catalog import (
    MetricCatalog,
    build_postgres_catalog,
    build_redis_catalog,
    register_all,
)
from .resource_lister import get_cluster_id, list_instances
from .scrape_orchestrator import scrape_all

logger = logging.getLogger("cloudmetrics.reconciler")
tracer = trace.get_tracer(__name__)

# --------------------------------------------------------------------------
# Prometheus metrics (exporter self-observability)
# --------------------------------------------------------------------------

RECONCILE_TOTAL = Counter(
    "cloudmetrics_reconcile_total",
    "Total number of cloud metrics reconcile passes",
    ["result"],  # result: success | partial | exception
)

RECONCILE_DURATION_SECONDS = Histogram(
    "cloudmetrics_reconcile_duration_seconds",
    "Duration of a full cloud metrics reconcile pass",
    buckets=(0.5, 1, 5, 10, 30, 60, 120, 300, 600),
)

LIST_ERRORS_TOTAL = Counter(
    "cloudmetrics_list_errors_total",
    "Managed resource listings that failed during a pass",
    ["kind"],
)

SYNC_ERRORS_TOTAL = Counter(
    "cloudmetrics_sync_errors_total",
    "Scrape or publish steps that failed for a whole kind during a pass",
    ["kind"],
)

SAMPLES_PUBLISHED_TOTAL = Counter(
    "cloudmetrics_samples_published_total",
    "Samples written to catalog gauges",
    ["kind"],
)


Lister = Callable[[ResourceKind, str], List[ManagedResourceInstance]]


@dataclass
class ResourceTarget:
    """One resource kind with its catalog and registered providers."""

    kind: ResourceKind
    catalog: MetricCatalog
    providers: List[MetricsProvider] = field(default_factory=list)


class CloudMetricsReconciler:
    """
    Runs one pass over every resource kind, in registration order.

    The returned ReconcileResult always carries the configured requeue
    interval, whatever failed during the pass.
    """

    def __init__(
        self,
        targets: Sequence[ResourceTarget],
        lister: Lister = list_instances,
        cluster_id_resolver: Callable[[], str] = get_cluster_id,
        watch_duration_seconds: Optional[float] = None,
        scrape_timeout_seconds: Optional[float] = None,
    ) -> None:
        self.targets = list(targets)
        self.lister = lister
        self.cluster_id_resolver = cluster_id_resolver
        self.watch_duration_seconds = watch_duration_seconds or settings.WATCH_DURATION_SECONDS
        self.scrape_timeout_seconds = scrape_timeout_seconds or settings.SCRAPE_TIMEOUT_SECONDS
        self.logger = new_controller_logger("cloudmetrics.reconciler", "controller_cloudmetrics")

        self.passes = 0
        self.last_pass_at: Optional[float] = None
        self.last_result: Optional[ReconcileResult] = None

    def register_metrics(self, registry: CollectorRegistry) -> None:
        register_all(registry, *(t.catalog for t in self.targets))

    async def reconcile(self, request: ReconcileRequest) -> ReconcileResult:
        log = new_action_logger(self.logger, "reconcile")
        log.info("Reconciling CloudMetrics (request=%s)", request.name)

        ctx = ScrapeContext(
            pass_id=uuid.uuid4().hex[:8],
            timeout_seconds=self.scrape_timeout_seconds,
        )
        errors: List[str] = []
        samples_by_kind = {}
        loop = asyncio.get_running_loop()
        start = time.time()

        with tracer.start_as_current_span("cloudmetrics.reconcile") as span:
            span.set_attribute("cloudmetrics.pass_id", ctx.pass_id)

            # Every kind shares the clusterID label; resolve it once per pass.
            targets = self.targets
            try:
                cluster_id = await loop.run_in_executor(None, self.cluster_id_resolver)
            except Exception as exc:  # noqa: BLE001
                cluster_id, targets = "", []
                span.record_exception(exc)
                log.error("Failed to resolve cluster ID, skipping all kinds: %s", exc)
                errors.append(f"cluster id: {exc}")
                for target in self.targets:
                    LIST_ERRORS_TOTAL.labels(kind=target.kind.value).inc()

            for target in targets:
                kind = target.kind.value
                kind_log = log.with_fields(kind=kind, pass_id=ctx.pass_id)

                try:
                    instances = await loop.run_in_executor(
                        None, self.lister, target.kind, cluster_id
                    )
                except Exception as exc:  # noqa: BLE001
                    LIST_ERRORS_TOTAL.labels(kind=kind).inc()
                    span.record_exception(exc)
                    kind_log.error("Failed to list %s instances, skipping kind: %s", kind, exc)
                    errors.append(f"list {kind}: {exc}")
                    continue

                try:
                    samples = await scrape_all(
                        kind, instances, target.providers, target.catalog, ctx
                    )
                    published = publish(target.catalog, samples)
                except Exception as exc:  # noqa: BLE001
                    SYNC_ERRORS_TOTAL.labels(kind=kind).inc()
                    span.record_exception(exc)
                    kind_log.exception("Failed to scrape/publish %s metrics, skipping kind", kind)
                    errors.append(f"sync {kind}: {exc}")
                    continue

                SAMPLES_PUBLISHED_TOTAL.labels(kind=kind).inc(published)
                samples_by_kind[kind] = published
                kind_log.info(
                    "Published %d of %d %s samples for %d instances",
                    published,
                    len(samples),
                    kind,
                    len(instances),
                )

            span.set_attribute("cloudmetrics.errors", len(errors))

        RECONCILE_DURATION_SECONDS.observe(time.time() - start)
        RECONCILE_TOTAL.labels(result="partial" if errors else "success").inc()

        result = ReconcileResult(
            requeue_after=self.watch_duration_seconds,
            errors=errors,
            samples_by_kind=samples_by_kind,
        )
        self.passes += 1
        self.last_pass_at = time.time()
        self.last_result = result
        log.info("Requeue in %.0fs", result.requeue_after)
        return result


class CloudMetricsManager:
    """
    Drives the reconciler from a single-slot trigger queue.

    start() injects one kick so the first pass runs immediately; after that
    the only trigger is the requeue scheduled from each pass's result. The
    queue holds at most one pending request, so passes never overlap.
    """

    def __init__(self, reconciler: CloudMetricsReconciler) -> None:
        self.reconciler = reconciler
        self.queue: "asyncio.Queue[ReconcileRequest]" = asyncio.Queue(maxsize=1)
        self._worker_task: Optional[asyncio.Task] = None
        self._requeue_handle: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._worker_task is None:
            logger.info("Starting CloudMetricsManager worker")
            self.enqueue(ReconcileRequest(name="cloudmetrics-initial"))
            self._worker_task = asyncio.create_task(self._worker())

    async def stop(self) -> None:
        if self._requeue_handle is not None:
            self._requeue_handle.cancel()
            self._requeue_handle = None
        if self._worker_task:
            logger.info("Stopping CloudMetricsManager worker")
            self._worker_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker_task
            self._worker_task = None

    def enqueue(self, request: ReconcileRequest) -> bool:
        try:
            self.queue.put_nowait(request)
        except asyncio.QueueFull:
            logger.debug("CloudMetricsManager: pass already pending, ignoring %s", request.name)
            return False
        return True

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    async def _worker(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            request = await self.queue.get()
            try:
                result = await self.reconciler.reconcile(request)
            except Exception:  # noqa: BLE001
                logger.exception("CloudMetricsManager: unhandled error during reconcile")
                RECONCILE_TOTAL.labels(result="exception").inc()
                result = ReconcileResult(
                    requeue_after=self.reconciler.watch_duration_seconds,
                    errors=["unhandled reconcile error"],
                )
            finally:
                self.queue.task_done()

            self._requeue_handle = loop.call_later(
                result.requeue_after,
                self.enqueue,
                ReconcileRequest(name="cloudmetrics-requeue"),
            )


def build_default_reconciler() -> CloudMetricsReconciler:
    return CloudMetricsReconciler(
        targets=[
            ResourceTarget(
                kind=ResourceKind.REDIS,
                catalog=build_redis_catalog(),
                providers=[AWSRedisMetricsProvider()],
            ),
            ResourceTarget(
                kind=ResourceKind.POSTGRES,
                catalog=build_postgres_catalog(),
                providers=[AWSPostgresMetricsProvider()],
            ),
        ]
    )


# Singleton instance used by app
cloud_metrics_manager = CloudMetricsManager(build_default_reconciler())
