import asyncio
import logging
from typing import List, Sequence

from opentelemetry import trace
from prometheus_client import Counter

from ..models.metric_models import GenericSample, ScrapeContext
from ..models.resource_models import ManagedResourceInstance
from .dispatcher import MetricsProvider, dispatch
from .metric_catalog import MetricCatalog

logger = logging.getLogger("cloudmetrics.scrape")
tracer = trace.get_tracer(__name__)

SCRAPE_CALLS_TOTAL = Counter(
    "cloudmetrics_scrape_calls_total",
    "Total provider scrape calls issued by the cloud metrics exporter",
    ["kind", "strategy"],
)

SCRAPE_ERRORS_TOTAL = Counter(
    "cloudmetrics_scrape_errors_total",
    "Total provider scrape calls that failed or timed out",
    ["kind", "strategy"],
)

SCRAPE_SKIPPED_TOTAL = Counter(
    "cloudmetrics_scrape_skipped_total",
    "Instances skipped because no provider supports their deployment strategy",
    ["kind", "strategy"],
)


async def scrape_all(
    kind: str,
    instances: Sequence[ManagedResourceInstance],
    providers: Sequence[MetricsProvider],
    catalog: MetricCatalog,
    ctx: ScrapeContext,
) -> List[GenericSample]:
    """
    Scrape every instance of one kind with every provider that supports it.

    A failing or hung provider call is logged and contributes no samples;
    the remaining instances and providers are still scraped. Samples are
    appended in scrape order.
    """
    samples: List[GenericSample] = []

    for instance in instances:
        strategy = instance.strategy
        try:
            selected = dispatch(providers, strategy, catalog)
        except Exception:  # noqa: BLE001
            SCRAPE_ERRORS_TOTAL.labels(kind=kind, strategy=strategy).inc()
            logger.exception(
                "Provider dispatch failed for %s %s/%s, skipping",
                kind,
                instance.namespace,
                instance.name,
            )
            continue

        if not selected:
            logger.info(
                "No %s metrics provider supports strategy %r for %s/%s, skipping",
                kind,
                strategy,
                instance.namespace,
                instance.name,
            )
            SCRAPE_SKIPPED_TOTAL.labels(kind=kind, strategy=strategy).inc()
            continue

        for provider, descriptors in selected:
            if not descriptors:
                logger.debug(
                    "Provider %s has no %s metrics for strategy %r",
                    provider.name,
                    kind,
                    strategy,
                )
                continue

            with tracer.start_as_current_span("cloudmetrics.scrape") as span:
                span.set_attribute("cloudmetrics.kind", kind)
                span.set_attribute("cloudmetrics.provider", provider.name)
                span.set_attribute("cloudmetrics.strategy", strategy)
                span.set_attribute("cloudmetrics.namespace", instance.namespace)
                span.set_attribute("cloudmetrics.resource", instance.name)
                span.set_attribute("cloudmetrics.descriptors", len(descriptors))

                SCRAPE_CALLS_TOTAL.labels(kind=kind, strategy=strategy).inc()
                try:
                    scraped = await asyncio.wait_for(
                        provider.scrape(ctx, instance, descriptors),
                        timeout=ctx.timeout_seconds,
                    )
                except asyncio.TimeoutError as exc:
                    SCRAPE_ERRORS_TOTAL.labels(kind=kind, strategy=strategy).inc()
                    span.record_exception(exc)
                    logger.error(
                        "Provider %s timed out after %.1fs scraping %s %s/%s",
                        provider.name,
                        ctx.timeout_seconds,
                        kind,
                        instance.namespace,
                        instance.name,
                    )
                    continue
                except Exception as exc:  # noqa: BLE001
                    SCRAPE_ERRORS_TOTAL.labels(kind=kind, strategy=strategy).inc()
                    span.record_exception(exc)
                    logger.exception(
                        "Provider %s failed to scrape %s %s/%s",
                        provider.name,
                        kind,
                        instance.namespace,
                        instance.name,
                    )
                    continue

                span.set_attribute("cloudmetrics.samples", len(scraped))
                span.set_attribute("cloudmetrics.pass_elapsed_seconds", ctx.elapsed())
                logger.debug(
                    "[%s] %s returned %d samples for %s/%s (%.2fs into pass)",
                    ctx.pass_id,
                    provider.name,
                    len(scraped),
                    instance.namespace,
                    instance.name,
                    ctx.elapsed(),
                )
                samples.extend(scraped)

    return samples
