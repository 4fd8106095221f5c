import logging
import time
from typing import Any, Dict, List, Optional

from kubernetes.client import ApiException, CustomObjectsApi
from opentelemetry import trace
from prometheus_client import Counter, Histogram

from ..config import settings
from ..models.resource_models import ManagedResourceInstance, ResourceKind
from ..utils.k8s_client import get_custom_objects_api

logger = logging.getLogger("cloudmetrics.k8s")
tracer = trace.get_tracer(__name__)

PRODUCT_NAME_LABEL = "productName"
RESOURCE_IDENTIFIER_ANNOTATION = "resourceIdentifier"

INFRASTRUCTURE_GROUP = "config.openshift.io"
INFRASTRUCTURE_VERSION = "v1"
INFRASTRUCTURE_PLURAL = "infrastructures"
INFRASTRUCTURE_NAME = "cluster"

# -------------------------------------------------------------------------
# Prometheus metrics for Kubernetes operations
# -------------------------------------------------------------------------

K8S_API_CALLS_TOTAL = Counter(
    "cloudmetrics_k8s_api_calls_total",
    "Total Kubernetes API calls from the cloud metrics exporter",
    ["verb", "resource"],
)

K8S_API_ERRORS_TOTAL = Counter(
    "cloudmetrics_k8s_api_errors_total",
    "Total failed Kubernetes API calls from the cloud metrics exporter",
    ["verb", "resource"],
)

K8S_API_LATENCY_SECONDS = Histogram(
    "cloudmetrics_k8s_api_latency_seconds",
    "Latency of Kubernetes API calls from the cloud metrics exporter",
    ["verb", "resource"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)


class ResourceListingError(Exception):
    """Raised when managed resources cannot be listed for a pass."""


# -------------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------------


def _observe(verb: str, resource: str, start: float, failed: bool = False) -> None:
    labels = {"verb": verb, "resource": resource}
    K8S_API_CALLS_TOTAL.labels(**labels).inc()
    K8S_API_LATENCY_SECONDS.labels(**labels).observe(time.time() - start)
    if failed:
        K8S_API_ERRORS_TOTAL.labels(**labels).inc()


def _to_instance(
    kind: ResourceKind, item: Dict[str, Any], cluster_id: str
) -> ManagedResourceInstance:
    metadata = item.get("metadata") or {}
    status = item.get("status") or {}
    labels = metadata.get("labels") or {}
    annotations = metadata.get("annotations") or {}
    name = metadata.get("name", "")

    return ManagedResourceInstance(
        kind=kind,
        name=name,
        namespace=metadata.get("namespace", ""),
        strategy=status.get("strategy") or "",
        cluster_id=cluster_id,
        resource_id=name,
        instance_id=annotations.get(RESOURCE_IDENTIFIER_ANNOTATION) or name,
        product_name=labels.get(PRODUCT_NAME_LABEL, ""),
    )


# -------------------------------------------------------------------------
# Cluster identity
# -------------------------------------------------------------------------


def get_cluster_id(api: Optional[CustomObjectsApi] = None) -> str:
    """
    Cluster ID used as the clusterID label.

    CLOUDMETRICS_CLUSTER_ID wins; otherwise read the infrastructure name
    from the OpenShift `infrastructures/cluster` object.
    """
    if settings.CLUSTER_ID:
        return settings.CLUSTER_ID

    api = api or get_custom_objects_api()
    start = time.time()
    try:
        infra = api.get_cluster_custom_object(
            group=INFRASTRUCTURE_GROUP,
            version=INFRASTRUCTURE_VERSION,
            plural=INFRASTRUCTURE_PLURAL,
            name=INFRASTRUCTURE_NAME,
        )
    except ApiException as exc:
        _observe("get", INFRASTRUCTURE_PLURAL, start, failed=True)
        raise ResourceListingError(f"failed to read cluster infrastructure: {exc}") from exc
    _observe("get", INFRASTRUCTURE_PLURAL, start)

    cluster_id = (infra.get("status") or {}).get("infrastructureName", "")
    if not cluster_id:
        raise ResourceListingError("cluster infrastructure has no infrastructureName")
    return cluster_id


# -------------------------------------------------------------------------
# Managed resources
# -------------------------------------------------------------------------


def list_instances(
    kind: ResourceKind,
    cluster_id: str,
    api: Optional[CustomObjectsApi] = None,
) -> List[ManagedResourceInstance]:
    """
    Lists every CR of `kind` across all namespaces.

    `cluster_id` is resolved once per pass by the caller (see get_cluster_id).

    Raises ResourceListingError when the API cannot be reached.
    """
    with tracer.start_as_current_span("k8s.list_managed_resources") as span:
        span.set_attribute("cloudmetrics.kind", kind.value)

        api = api or get_custom_objects_api()
        start = time.time()
        try:
            resp = api.list_cluster_custom_object(
                group=settings.CRD_GROUP,
                version=settings.CRD_VERSION,
                plural=kind.value,
            )
        except ApiException as exc:
            _observe("list", kind.value, start, failed=True)
            logger.error("Error listing %s resources: %s", kind.value, exc)
            span.record_exception(exc)
            raise ResourceListingError(f"failed to list {kind.value}: {exc}") from exc
        _observe("list", kind.value, start)

        instances = [_to_instance(kind, item, cluster_id) for item in resp.get("items", [])]
        span.set_attribute("cloudmetrics.instances", len(instances))

    if instances:
        for instance in instances:
            logger.info("Found %s cr: %s", kind.value, instance.name)
    else:
        logger.info("Found no %s instances", kind.value)

    return instances
