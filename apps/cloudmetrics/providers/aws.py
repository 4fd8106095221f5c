"""
AWS CloudWatch metrics providers.

Both providers issue one GetMetricStatistics call per query descriptor over
the trailing metric window and keep the most recent datapoint. boto3 is
blocking, so the calls run in the default executor; the scrape orchestrator
bounds the whole call with the pass timeout.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

import boto3
from botocore.config import Config

from ..config import settings
from ..models.metric_models import GenericSample, ProviderQueryDescriptor, ScrapeContext
from ..models.resource_models import DeploymentStrategy, ManagedResourceInstance
from ..services.dispatcher import MetricsProvider

logger = logging.getLogger("cloudmetrics.providers.aws")


class CloudWatchMetricsProvider(MetricsProvider):
    name = "aws-cloudwatch"
    strategy = DeploymentStrategy.AWS.value

    # Set by subclasses
    cloudwatch_namespace = ""
    dimension_name = ""

    def __init__(
        self,
        client: Optional[Any] = None,
        region: Optional[str] = None,
        window_seconds: Optional[int] = None,
        period_seconds: Optional[int] = None,
    ) -> None:
        self._client = client
        self.region = region or settings.AWS_REGION
        self.window_seconds = window_seconds or settings.METRIC_WINDOW_SECONDS
        self.period_seconds = period_seconds or settings.METRIC_PERIOD_SECONDS

    def supports_strategy(self, strategy: str) -> bool:
        return strategy == self.strategy

    @property
    def client(self) -> Any:
        if self._client is None:
            timeout = int(settings.SCRAPE_TIMEOUT_SECONDS)
            self._client = boto3.client(
                "cloudwatch",
                region_name=self.region,
                config=Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"max_attempts": 2},
                ),
            )
        return self._client

    async def scrape(
        self,
        ctx: ScrapeContext,
        instance: ManagedResourceInstance,
        descriptors: Sequence[ProviderQueryDescriptor],
    ) -> List[GenericSample]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._scrape_sync(ctx, instance, descriptors),
        )

    def _scrape_sync(
        self,
        ctx: ScrapeContext,
        instance: ManagedResourceInstance,
        descriptors: Sequence[ProviderQueryDescriptor],
    ) -> List[GenericSample]:
        end = datetime.now(timezone.utc)
        start = end - timedelta(seconds=self.window_seconds)
        labels = instance.label_set(self.strategy)

        samples: List[GenericSample] = []
        for descriptor in descriptors:
            stat = descriptor.statistic.value
            resp = self.client.get_metric_statistics(
                Namespace=self.cloudwatch_namespace,
                MetricName=descriptor.provider_metric_name,
                Dimensions=[{"Name": self.dimension_name, "Value": instance.instance_id}],
                StartTime=start,
                EndTime=end,
                Period=self.period_seconds,
                Statistics=[stat],
            )
            datapoints = resp.get("Datapoints") or []
            if not datapoints:
                logger.debug(
                    "[%s] no %s datapoints for %s %s",
                    ctx.pass_id,
                    descriptor.provider_metric_name,
                    self.dimension_name,
                    instance.instance_id,
                )
                continue

            latest = max(datapoints, key=lambda p: p["Timestamp"])
            samples.append(
                GenericSample(
                    catalog_metric_name=descriptor.catalog_metric_name,
                    value=float(latest[stat]),
                    labels=labels,
                )
            )

        return samples


class AWSRedisMetricsProvider(CloudWatchMetricsProvider):
    name = "aws-elasticache"
    cloudwatch_namespace = "AWS/ElastiCache"
    dimension_name = "CacheClusterId"


class AWSPostgresMetricsProvider(CloudWatchMetricsProvider):
    name = "aws-rds"
    cloudwatch_namespace = "AWS/RDS"
    dimension_name = "DBInstanceIdentifier"
