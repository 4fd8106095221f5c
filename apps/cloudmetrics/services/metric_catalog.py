"""
Provider-neutral metric catalog.

Each MetricDefinition pairs an exposed Prometheus gauge with the query a
provider needs to fetch the value, keyed by deployment strategy. Gauges are
created unregistered; register_all() exposes them exactly once at startup.
A second registration of the same name raises ValueError from
prometheus_client and is meant to stop the process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional

from prometheus_client import CollectorRegistry, Gauge

from ..models.metric_models import LABEL_NAMES, ProviderQueryDescriptor, Statistic
from ..models.resource_models import DeploymentStrategy

logger = logging.getLogger("cloudmetrics.catalog")

PREFIX = "cro_"


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    gauge: Gauge
    provider_queries: Mapping[str, ProviderQueryDescriptor] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        name: str,
        documentation: str,
        provider_queries: Mapping[str, ProviderQueryDescriptor],
    ) -> "MetricDefinition":
        gauge = Gauge(name, documentation, labelnames=LABEL_NAMES, registry=None)
        return cls(name=name, gauge=gauge, provider_queries=dict(provider_queries))


class MetricCatalog:
    """Ordered, immutable collection of MetricDefinitions for one resource kind."""

    def __init__(self, definitions: List[MetricDefinition]) -> None:
        self._definitions = tuple(definitions)

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def descriptors_for(self, strategy: str) -> List[ProviderQueryDescriptor]:
        """Query descriptors for every metric that declares `strategy`."""
        return [
            d.provider_queries[strategy]
            for d in self._definitions
            if strategy in d.provider_queries
        ]

    def find(self, name: str) -> Optional[MetricDefinition]:
        # Linear scan, first match wins. Catalogs hold a handful of entries.
        for definition in self._definitions:
            if definition.name == name:
                return definition
        return None

    def register_all(self, registry: CollectorRegistry) -> None:
        for definition in self._definitions:
            registry.register(definition.gauge)
            logger.debug("Registered gauge %s", definition.name)


def register_all(registry: CollectorRegistry, *catalogs: MetricCatalog) -> None:
    """Expose every catalog gauge on `registry`. Call once, before the first pass."""
    for catalog in catalogs:
        catalog.register_all(registry)
    logger.info(
        "Registered %d cloud resource gauges",
        sum(len(c) for c in catalogs),
    )


def _aws(catalog_name: str, provider_name: str) -> Dict[str, ProviderQueryDescriptor]:
    return {
        DeploymentStrategy.AWS.value: ProviderQueryDescriptor(
            catalog_metric_name=catalog_name,
            provider_metric_name=provider_name,
            statistic=Statistic.AVERAGE,
        )
    }


# ---------------------------------------------------------------------------
# Default catalogs
# ---------------------------------------------------------------------------

REDIS_MEMORY_USAGE_PERCENTAGE_AVERAGE = f"{PREFIX}redis_memory_usage_percentage_average"
REDIS_FREEABLE_MEMORY_AVERAGE = f"{PREFIX}redis_freeable_memory_average"
REDIS_CPU_UTILIZATION_AVERAGE = f"{PREFIX}redis_cpu_utilization_average"
REDIS_ENGINE_CPU_UTILIZATION_AVERAGE = f"{PREFIX}redis_engine_cpu_utilization_average"

POSTGRES_FREE_STORAGE_AVERAGE = f"{PREFIX}postgres_free_storage_average"
POSTGRES_CPU_UTILIZATION_AVERAGE = f"{PREFIX}postgres_cpu_utilization_average"
POSTGRES_FREEABLE_MEMORY_AVERAGE = f"{PREFIX}postgres_freeable_memory_average"


def build_redis_catalog() -> MetricCatalog:
    return MetricCatalog(
        [
            MetricDefinition.create(
                REDIS_MEMORY_USAGE_PERCENTAGE_AVERAGE,
                "Percentage of redis used memory",
                _aws(REDIS_MEMORY_USAGE_PERCENTAGE_AVERAGE, "DatabaseMemoryUsagePercentage"),
            ),
            MetricDefinition.create(
                REDIS_FREEABLE_MEMORY_AVERAGE,
                "The amount of free random-access memory (bytes) on the redis host",
                _aws(REDIS_FREEABLE_MEMORY_AVERAGE, "FreeableMemory"),
            ),
            MetricDefinition.create(
                REDIS_CPU_UTILIZATION_AVERAGE,
                "The percentage of CPU utilization on the redis host",
                _aws(REDIS_CPU_UTILIZATION_AVERAGE, "CPUUtilization"),
            ),
            MetricDefinition.create(
                REDIS_ENGINE_CPU_UTILIZATION_AVERAGE,
                "The percentage of CPU utilization of the redis engine thread",
                _aws(REDIS_ENGINE_CPU_UTILIZATION_AVERAGE, "EngineCPUUtilization"),
            ),
        ]
    )


def build_postgres_catalog() -> MetricCatalog:
    return MetricCatalog(
        [
            MetricDefinition.create(
                POSTGRES_FREE_STORAGE_AVERAGE,
                "The amount of available storage space (bytes) on the postgres instance",
                _aws(POSTGRES_FREE_STORAGE_AVERAGE, "FreeStorageSpace"),
            ),
            MetricDefinition.create(
                POSTGRES_CPU_UTILIZATION_AVERAGE,
                "The percentage of CPU utilization on the postgres instance",
                _aws(POSTGRES_CPU_UTILIZATION_AVERAGE, "CPUUtilization"),
            ),
            MetricDefinition.create(
                POSTGRES_FREEABLE_MEMORY_AVERAGE,
                "The amount of available random-access memory (bytes) on the postgres instance",
                _aws(POSTGRES_FREEABLE_MEMORY_AVERAGE, "FreeableMemory"),
            ),
        ]
    )
