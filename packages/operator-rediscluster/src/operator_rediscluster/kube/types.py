"""
Kubernetes API response types.

Pydantic models for the parts of the Kubernetes API the operator reads:
- core/v1 Pods (name, labels, IP, phase, deletion state)
- redisoperator.k8s.io/v1 RedisClusters (spec and published status)

Only the fields the engine needs are modeled; everything else in the
responses is ignored. Internal types (PodInfo, ClusterSpec) are dataclasses
in operator_rediscluster.types.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class KubeModel(BaseModel):
    """Base model accepting camelCase API fields and ignoring unknown ones."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ObjectMeta(KubeModel):
    name: str
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)
    deletion_timestamp: datetime | None = Field(default=None, alias="deletionTimestamp")
    deletion_grace_period_seconds: int | None = Field(
        default=None, alias="deletionGracePeriodSeconds"
    )


# =============================================================================
# Pods
# =============================================================================


class PodStatus(KubeModel):
    phase: str = ""
    pod_ip: str = Field(default="", alias="podIP")


class Pod(KubeModel):
    metadata: ObjectMeta
    status: PodStatus = Field(default_factory=PodStatus)


class PodList(KubeModel):
    """
    Response from GET /api/v1/namespaces/{namespace}/pods.

    Example response:
    {
        "kind": "PodList",
        "items": [
            {
                "metadata": {"name": "rediscluster-a-0", "labels": {...}},
                "status": {"phase": "Running", "podIP": "10.0.0.12"}
            }
        ]
    }
    """

    items: list[Pod] = Field(default_factory=list)


# =============================================================================
# RedisCluster custom resource
# =============================================================================


class RedisClusterSpecModel(KubeModel):
    number_of_master: int = Field(default=3, alias="numberOfMaster")
    replication_factor: int = Field(default=1, alias="replicationFactor")
    service_type: str = Field(default="", alias="serviceType")
    service_node_port_start: int | None = Field(default=None, alias="serviceNodePortStart")


class RedisClusterNodeModel(KubeModel):
    id: str
    pod_name: str = Field(default="", alias="podName")


class RedisClusterClusterStatus(KubeModel):
    status: str = ""
    nodes: list[RedisClusterNodeModel] = Field(default_factory=list)


class RedisClusterStatusModel(KubeModel):
    cluster: RedisClusterClusterStatus | None = None


class RedisClusterResource(KubeModel):
    """A single RedisCluster object."""

    metadata: ObjectMeta
    spec: RedisClusterSpecModel = Field(default_factory=RedisClusterSpecModel)
    status: RedisClusterStatusModel | None = None


class RedisClusterList(KubeModel):
    """Response from GET .../redisclusters."""

    items: list[RedisClusterResource] = Field(default_factory=list)
