from __future__ import annotations

from enum import Enum
from typing import Dict

from pydantic import BaseModel, Field


class ResourceKind(str, Enum):
    REDIS = "redis"
    POSTGRES = "postgres"


class DeploymentStrategy(str, Enum):
    AWS = "aws"
    OPENSHIFT = "openshift"


class ManagedResourceInstance(BaseModel):
    """
    Read-only snapshot of one redis/postgres custom resource.

    Built from the CR by the resource lister at the start of each pass.
    """
    kind: ResourceKind
    name: str
    namespace: str
    strategy: str = Field(
        default="",
        description="Deployment strategy recorded in the CR status (empty until provisioned).",
    )
    cluster_id: str = ""
    resource_id: str = ""
    instance_id: str = ""
    product_name: str = ""

    def label_set(self, strategy: str) -> Dict[str, str]:
        return {
            "clusterID": self.cluster_id,
            "resourceID": self.resource_id,
            "namespace": self.namespace,
            "instanceID": self.instance_id,
            "productName": self.product_name,
            "strategy": strategy,
        }
