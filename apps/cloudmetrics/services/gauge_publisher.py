import logging
from typing import Iterable

from ..models.metric_models import LABEL_NAMES, GenericSample
from .metric_catalog import MetricCatalog

logger = logging.getLogger("cloudmetrics.publisher")


def publish(catalog: MetricCatalog, samples: Iterable[GenericSample]) -> int:
    """
    Set each sample's value on the matching catalog gauge.

    The series is the sample's six-label tuple; any previous value for that
    tuple is overwritten. Samples with no catalog entry are dropped.
    Returns the number of samples published.
    """
    published = 0
    for sample in samples:
        definition = catalog.find(sample.catalog_metric_name)
        if definition is None:
            logger.debug("No catalog gauge for sample %s, dropping", sample.catalog_metric_name)
            continue

        labels = {name: sample.labels.get(name, "") for name in LABEL_NAMES}
        definition.gauge.labels(**labels).set(sample.value)
        published += 1

    return published
