"""
Provider dispatch.

Providers are plain objects registered into a flat list per resource kind.
For one instance, dispatch() keeps the providers that support the instance's
deployment strategy and pairs each with the catalog descriptors for that
strategy.
"""

from __future__ import annotations

import abc
from typing import List, Sequence, Tuple

from ..models.metric_models import GenericSample, ProviderQueryDescriptor, ScrapeContext
from ..models.resource_models import ManagedResourceInstance
from .metric_catalog import MetricCatalog


class MetricsProvider(abc.ABC):
    """Capability interface for one cloud backend and one resource kind."""

    name: str = "provider"

    @abc.abstractmethod
    def supports_strategy(self, strategy: str) -> bool:
        ...

    @abc.abstractmethod
    async def scrape(
        self,
        ctx: ScrapeContext,
        instance: ManagedResourceInstance,
        descriptors: Sequence[ProviderQueryDescriptor],
    ) -> List[GenericSample]:
        """Fetch every descriptor for `instance`. Raise on failure."""


Dispatch = List[Tuple[MetricsProvider, List[ProviderQueryDescriptor]]]


def dispatch(
    providers: Sequence[MetricsProvider],
    strategy: str,
    catalog: MetricCatalog,
) -> Dispatch:
    """
    Select providers for `strategy` and the descriptors each should request.

    An empty result means the instance is skipped for this pass.
    """
    selected: Dispatch = []
    for provider in providers:
        if not provider.supports_strategy(strategy):
            continue
        selected.append((provider, catalog.descriptors_for(strategy)))
    return selected
