"""Shared fixtures for cloud metrics tests."""

from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence

import pytest
from prometheus_client import CollectorRegistry

from apps.cloudmetrics.models.metric_models import (
    GenericSample,
    ProviderQueryDescriptor,
    ScrapeContext,
    Statistic,
)
from apps.cloudmetrics.models.resource_models import ManagedResourceInstance, ResourceKind
from apps.cloudmetrics.services.dispatcher import MetricsProvider
from apps.cloudmetrics.services.metric_catalog import MetricCatalog, MetricDefinition


class FakeProvider(MetricsProvider):
    """Returns one sample per descriptor, or fails/hangs for chosen instances."""

    def __init__(
        self,
        strategies: Iterable[str] = ("aws",),
        values: Optional[Dict[str, float]] = None,
        fail_for: Iterable[str] = (),
        hang_for: Iterable[str] = (),
        name: str = "fake",
    ) -> None:
        self.strategies = set(strategies)
        self.values = values or {}
        self.fail_for = set(fail_for)
        self.hang_for = set(hang_for)
        self.name = name
        self.calls: List[tuple] = []

    def supports_strategy(self, strategy: str) -> bool:
        return strategy in self.strategies

    async def scrape(
        self,
        ctx: ScrapeContext,
        instance: ManagedResourceInstance,
        descriptors: Sequence[ProviderQueryDescriptor],
    ) -> List[GenericSample]:
        self.calls.append((instance.name, list(descriptors)))
        if instance.name in self.fail_for:
            raise RuntimeError(f"cloud API unavailable for {instance.name}")
        if instance.name in self.hang_for:
            await asyncio.sleep(30)
        value = self.values.get(instance.name, 1.0)
        return [
            GenericSample(
                catalog_metric_name=d.catalog_metric_name,
                value=value,
                labels=instance.label_set(instance.strategy),
            )
            for d in descriptors
        ]


@pytest.fixture
def fresh_registry():
    return CollectorRegistry()


@pytest.fixture
def free_storage_catalog(fresh_registry):
    """Single-metric catalog, registered on a fresh registry."""
    catalog = MetricCatalog(
        [
            MetricDefinition.create(
                "free_storage_avg",
                "Free storage average",
                {
                    "aws": ProviderQueryDescriptor(
                        catalog_metric_name="free_storage_avg",
                        provider_metric_name="FreeStorageSpace",
                        statistic=Statistic.AVERAGE,
                    )
                },
            )
        ]
    )
    catalog.register_all(fresh_registry)
    return catalog


@pytest.fixture
def make_instance():
    def _make(
        name: str = "r1",
        strategy: str = "aws",
        kind: ResourceKind = ResourceKind.POSTGRES,
        **overrides,
    ) -> ManagedResourceInstance:
        fields = dict(
            kind=kind,
            name=name,
            namespace="ns1",
            strategy=strategy,
            cluster_id="c1",
            resource_id=name,
            instance_id=f"i-{name}",
            product_name="p1",
        )
        fields.update(overrides)
        return ManagedResourceInstance(**fields)

    return _make


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def scrape_ctx():
    return ScrapeContext(pass_id="test", timeout_seconds=0.5)
