"""Pod lifecycle collaborator backed by the Kubernetes API."""

from dataclasses import dataclass

import httpx

from operator_rediscluster.exceptions import PodControlError
from operator_rediscluster.kube.client import KubeClient
from operator_rediscluster.kube.types import Pod
from operator_rediscluster.types import CLUSTER_NAME_LABEL_KEY, PodInfo


def pod_info_from_kube(pod: Pod) -> PodInfo:
    return PodInfo(
        name=pod.metadata.name,
        ip=pod.status.pod_ip,
        phase=pod.status.phase,
        labels=dict(pod.metadata.labels),
        deletion_timestamp=pod.metadata.deletion_timestamp,
        deletion_grace_period_seconds=pod.metadata.deletion_grace_period_seconds,
    )


@dataclass
class KubePodControl:
    """
    Lists and deletes the pods of a RedisCluster.

    Pods are selected by the cluster-name label the operator puts on every
    redis pod. Pod specs are never touched here.
    """

    kube: KubeClient

    async def list_pods(self, namespace: str, cluster_name: str) -> list[PodInfo]:
        pods = await self.kube.list_pods(
            namespace, f"{CLUSTER_NAME_LABEL_KEY}={cluster_name}"
        )
        return [pod_info_from_kube(p) for p in pods.items]

    async def delete_pod(self, namespace: str, name: str) -> None:
        await self._delete(namespace, name, grace_period_seconds=None)

    async def delete_pod_now(self, namespace: str, name: str) -> None:
        await self._delete(namespace, name, grace_period_seconds=0)

    async def _delete(self, namespace: str, name: str, grace_period_seconds: int | None) -> None:
        try:
            await self.kube.delete_pod(namespace, name, grace_period_seconds=grace_period_seconds)
        except httpx.HTTPError as e:
            raise PodControlError(name, "delete", str(e)) from e
