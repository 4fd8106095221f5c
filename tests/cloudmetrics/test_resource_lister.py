from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException

from apps.cloudmetrics.config import settings
from apps.cloudmetrics.models.resource_models import ResourceKind
from apps.cloudmetrics.services import resource_lister
from apps.cloudmetrics.services.resource_lister import (
    ResourceListingError,
    get_cluster_id,
    list_instances,
)


def _cr(name, namespace="ns1", strategy="aws", product="p1", identifier=None):
    metadata = {"name": name, "namespace": namespace, "labels": {"productName": product}}
    if identifier:
        metadata["annotations"] = {"resourceIdentifier": identifier}
    return {"metadata": metadata, "status": {"strategy": strategy}}


@pytest.fixture
def api():
    api = MagicMock()
    api.get_cluster_custom_object.return_value = {"status": {"infrastructureName": "c1"}}
    return api


@pytest.fixture(autouse=True)
def no_cluster_override(monkeypatch):
    monkeypatch.setattr(settings, "CLUSTER_ID", "")


def test_list_instances_maps_cr_fields(api):
    api.list_cluster_custom_object.return_value = {
        "items": [_cr("example-postgres", identifier="rds-abc123"), _cr("plain", strategy="openshift")]
    }

    instances = list_instances(ResourceKind.POSTGRES, "c1", api=api)

    api.list_cluster_custom_object.assert_called_once_with(
        group="integreatly.org", version="v1alpha1", plural="postgres"
    )
    first, second = instances
    assert first.label_set(first.strategy) == {
        "clusterID": "c1",
        "resourceID": "example-postgres",
        "namespace": "ns1",
        "instanceID": "rds-abc123",
        "productName": "p1",
        "strategy": "aws",
    }
    assert second.instance_id == "plain"
    assert second.strategy == "openshift"


def test_list_instances_without_status_has_empty_strategy(api):
    api.list_cluster_custom_object.return_value = {
        "items": [{"metadata": {"name": "new-redis", "namespace": "ns2"}}]
    }

    (instance,) = list_instances(ResourceKind.REDIS, "c1", api=api)

    assert instance.strategy == ""
    assert instance.product_name == ""


def test_list_instances_empty(api):
    api.list_cluster_custom_object.return_value = {"items": []}
    assert list_instances(ResourceKind.REDIS, "c1", api=api) == []


def test_list_api_error_raises_listing_error(api):
    api.list_cluster_custom_object.side_effect = ApiException(status=503, reason="unavailable")

    with pytest.raises(ResourceListingError):
        list_instances(ResourceKind.REDIS, "c1", api=api)


def test_cluster_id_override_skips_infrastructure(api, monkeypatch):
    monkeypatch.setattr(settings, "CLUSTER_ID", "override")

    assert get_cluster_id(api) == "override"
    api.get_cluster_custom_object.assert_not_called()


def test_cluster_id_missing_is_listing_error(api):
    api.get_cluster_custom_object.return_value = {"status": {}}

    with pytest.raises(ResourceListingError):
        get_cluster_id(api)


def test_cluster_id_api_error(api):
    api.get_cluster_custom_object.side_effect = ApiException(status=404, reason="not found")

    with pytest.raises(ResourceListingError):
        get_cluster_id(api)


def test_default_api_comes_from_k8s_client(monkeypatch, api):
    api.list_cluster_custom_object.return_value = {"items": []}
    monkeypatch.setattr(resource_lister, "get_custom_objects_api", lambda: api)

    assert list_instances(ResourceKind.POSTGRES, "c1") == []
    api.list_cluster_custom_object.assert_called_once()
    api.get_cluster_custom_object.assert_not_called()
