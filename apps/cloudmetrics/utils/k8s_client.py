"""
Kubernetes client helper for the cloud metrics exporter.

The exporter only reads custom resources: the integreatly.org redis and
postgres CRs and the OpenShift infrastructures/cluster object that carries
the cluster ID. Both go through CustomObjectsApi, so no typed CoreV1/AppsV1
clients are built. The ServiceAccount needs list on redis/postgres and get
on infrastructures; nothing is ever written back.
"""

from __future__ import annotations

import logging

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

logger = logging.getLogger("cloudmetrics.k8s")


def get_custom_objects_api() -> client.CustomObjectsApi:
    """
    Returns a CustomObjectsApi client; built per listing so a rotated
    ServiceAccount token is picked up on the next pass.

    Order of config:
      1. In-cluster (for pods in the cluster)
      2. KUBECONFIG / ~/.kube/config (for local dev)
    """
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except ConfigException:
        logger.warning("In-cluster config not found, trying local kubeconfig")
        config.load_kube_config()
        logger.info("Loaded local kubeconfig")

    return client.CustomObjectsApi()
