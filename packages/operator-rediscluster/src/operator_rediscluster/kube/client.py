"""
Kubernetes REST client for the Redis Cluster operator.

KubeClient receives an injected httpx.AsyncClient with base_url set to the
API server (and credentials configured). All methods are async and fail
loudly on HTTP errors, except where a 404 has a meaning of its own.

API references:
- https://kubernetes.io/docs/reference/kubernetes-api/workload-resources/pod-v1/
- https://kubernetes.io/docs/reference/using-api/api-concepts/#patch-and-apply
"""

import json
from dataclasses import dataclass
from typing import Any

import httpx

from operator_rediscluster.exceptions import ClusterNotFoundError
from operator_rediscluster.kube.types import PodList, RedisClusterList, RedisClusterResource

REDIS_CLUSTER_GROUP = "redisoperator.k8s.io"
REDIS_CLUSTER_VERSION = "v1"
REDIS_CLUSTER_PLURAL = "redisclusters"

MERGE_PATCH = "application/merge-patch+json"


def redis_clusters_path(namespace: str = "") -> str:
    base = f"/apis/{REDIS_CLUSTER_GROUP}/{REDIS_CLUSTER_VERSION}"
    if namespace:
        return f"{base}/namespaces/{namespace}/{REDIS_CLUSTER_PLURAL}"
    return f"{base}/{REDIS_CLUSTER_PLURAL}"


@dataclass
class KubeClient:
    """
    Kubernetes API client with injected httpx client.

    Attributes:
        http: Pre-configured httpx.AsyncClient with base_url set to the API
            server.

    Example:
        async with httpx.AsyncClient(base_url="https://kubernetes.default.svc") as http:
            kube = KubeClient(http=http)
            pods = await kube.list_pods(
                "redis", "redis-operator.k8s.io/cluster-name=my-cluster"
            )
    """

    http: httpx.AsyncClient

    async def list_pods(self, namespace: str, label_selector: str) -> PodList:
        """
        List pods matching a label selector.

        Raises:
            httpx.HTTPStatusError: On HTTP errors (4xx, 5xx responses).
            pydantic.ValidationError: On malformed response data.
        """
        response = await self.http.get(
            f"/api/v1/namespaces/{namespace}/pods",
            params={"labelSelector": label_selector},
        )
        response.raise_for_status()
        return PodList.model_validate(response.json())

    async def delete_pod(
        self, namespace: str, name: str, grace_period_seconds: int | None = None
    ) -> None:
        """
        Delete a pod.

        A pod that is already gone (404) counts as deleted.

        Args:
            namespace: Pod namespace
            name: Pod name
            grace_period_seconds: Override of the pod's grace period; 0
                deletes immediately.

        Raises:
            httpx.HTTPStatusError: On any other HTTP error.
        """
        body: dict[str, Any] = {"kind": "DeleteOptions", "apiVersion": "v1"}
        if grace_period_seconds is not None:
            body["gracePeriodSeconds"] = grace_period_seconds

        response = await self.http.request(
            "DELETE",
            f"/api/v1/namespaces/{namespace}/pods/{name}",
            json=body,
        )
        if response.status_code == 404:
            return
        response.raise_for_status()

    async def list_redis_clusters(self, namespace: str = "") -> RedisClusterList:
        """List RedisCluster resources, in every namespace when namespace is empty."""
        response = await self.http.get(redis_clusters_path(namespace))
        response.raise_for_status()
        return RedisClusterList.model_validate(response.json())

    async def get_redis_cluster(self, namespace: str, name: str) -> RedisClusterResource:
        """
        Get one RedisCluster resource.

        Raises:
            ClusterNotFoundError: If the resource does not exist.
            httpx.HTTPStatusError: On any other HTTP error.
        """
        response = await self.http.get(f"{redis_clusters_path(namespace)}/{name}")
        if response.status_code == 404:
            raise ClusterNotFoundError(namespace, name)
        response.raise_for_status()
        return RedisClusterResource.model_validate(response.json())

    async def patch_redis_cluster_status(
        self, namespace: str, name: str, status: dict[str, Any]
    ) -> None:
        """
        Merge-patch the status subresource of a RedisCluster.

        Raises:
            ClusterNotFoundError: If the resource was deleted meanwhile.
            httpx.HTTPStatusError: On any other HTTP error.
        """
        response = await self.http.patch(
            f"{redis_clusters_path(namespace)}/{name}/status",
            content=json.dumps({"status": status}),
            headers={"Content-Type": MERGE_PATCH},
        )
        if response.status_code == 404:
            raise ClusterNotFoundError(namespace, name)
        response.raise_for_status()
