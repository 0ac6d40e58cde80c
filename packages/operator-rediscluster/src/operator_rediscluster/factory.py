"""
Factory functions wiring the operator's collaborators.

Used by the CLI to build a ReconcileLoop from OperatorSettings without
knowing how each collaborator is constructed.
"""

import ssl
from pathlib import Path

import httpx

from operator_rediscluster.admin import RedisAdmin
from operator_rediscluster.config import OperatorSettings
from operator_rediscluster.kube import KubeClient, KubeClusterSource, KubePodControl
from operator_rediscluster.reconcile import ReconcileLoop


def create_kube_http(settings: OperatorSettings) -> httpx.AsyncClient:
    """
    Create the httpx client for the Kubernetes API.

    Uses the service account token and CA bundle when they are mounted
    (in-cluster); otherwise talks to api_server without credentials,
    which suits `kubectl proxy`.
    """
    headers: dict[str, str] = {}
    token_path = Path(settings.token_path)
    if token_path.is_file():
        headers["Authorization"] = f"Bearer {token_path.read_text().strip()}"

    verify: ssl.SSLContext | bool = True
    ca_path = Path(settings.ca_path)
    if ca_path.is_file():
        verify = ssl.create_default_context(cafile=str(ca_path))

    return httpx.AsyncClient(
        base_url=settings.api_server,
        headers=headers,
        verify=verify,
        timeout=settings.api_timeout_seconds,
    )


def create_admin(settings: OperatorSettings) -> RedisAdmin:
    return RedisAdmin(
        timeout=settings.admin_timeout_seconds,
        min_reachable_ratio=settings.min_reachable_ratio,
        password=settings.redis_password,
    )


def create_reconcile_loop(
    settings: OperatorSettings,
    kube_http: httpx.AsyncClient | None = None,
    admin: RedisAdmin | None = None,
) -> ReconcileLoop:
    """
    Create a ReconcileLoop backed by Kubernetes and redis.

    Args:
        settings: Operator settings
        kube_http: Optional pre-configured client for the Kubernetes API.
            If None, one is created with create_kube_http().
        admin: Optional pre-configured admin client

    Returns:
        ReconcileLoop ready to run. The caller owns kube_http and admin and
        must close them.

    Example:
        settings = OperatorSettings()
        loop = create_reconcile_loop(settings)
        await loop.run()
    """
    if kube_http is None:
        kube_http = create_kube_http(settings)
    if admin is None:
        admin = create_admin(settings)

    kube = KubeClient(http=kube_http)
    return ReconcileLoop(
        source=KubeClusterSource(kube=kube, namespace=settings.namespace),
        pod_control=KubePodControl(kube=kube),
        admin=admin,
        settings=settings,
    )
