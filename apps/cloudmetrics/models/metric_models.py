"""
Pydantic models for metric queries, scraped samples and reconcile passes.

These models are used across:
  - the metric catalog (query descriptors per deployment strategy)
  - provider scrape calls (ScrapeContext in, GenericSample out)
  - the gauge publisher
  - the reconcile loop (ReconcileRequest → ReconcileResult)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


# The fixed label set identifying one time series in every catalog gauge.
LABEL_NAMES = (
    "clusterID",
    "resourceID",
    "namespace",
    "instanceID",
    "productName",
    "strategy",
)


# ---------------------------------------------------------------------------
# Provider queries
# ---------------------------------------------------------------------------

class Statistic(str, Enum):
    AVERAGE = "Average"
    MINIMUM = "Minimum"
    MAXIMUM = "Maximum"
    SUM = "Sum"
    SAMPLE_COUNT = "SampleCount"


class ProviderQueryDescriptor(BaseModel):
    """How to ask one provider for one catalog metric."""

    model_config = ConfigDict(frozen=True)

    catalog_metric_name: str
    provider_metric_name: str
    statistic: Statistic = Statistic.AVERAGE


# ---------------------------------------------------------------------------
# Scrape results
# ---------------------------------------------------------------------------

class GenericSample(BaseModel):
    """
    Provider-neutral observation returned by a scrape.

    Lives for a single pass only; the publisher turns it into a gauge value.
    """

    catalog_metric_name: str
    value: float
    labels: Dict[str, str] = Field(
        default_factory=dict,
        description="clusterID, resourceID, namespace, instanceID, productName, strategy",
    )


@dataclass
class ScrapeContext:
    pass_id: str
    timeout_seconds: float
    started_at: float = field(default_factory=time.monotonic)

    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


# ---------------------------------------------------------------------------
# Reconcile protocol
# ---------------------------------------------------------------------------

class ReconcileRequest(BaseModel):
    """Opaque trigger token. The name only shows up in logs."""

    name: str = "cloudmetrics"


class ReconcileResult(BaseModel):
    requeue_after: float = Field(..., description="Seconds until the next pass")
    errors: List[str] = Field(default_factory=list)
    samples_by_kind: Dict[str, int] = Field(default_factory=dict)
