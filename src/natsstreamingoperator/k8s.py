"""Helpers for interacting with Kubernetes APIs."""

__all__ = (
    "create_k8sclient",
    "create_pod",
    "delete_pod",
    "get_pod",
    "list_pods",
    "list_running_pods",
    "make_label_selector",
)

from collections.abc import Mapping
from typing import Any

import kubernetes
import structlog
from kubernetes.client.exceptions import ApiException


def create_k8sclient(kubeconfig: str = "") -> kubernetes.client:
    """Get a Kubernetes client configured with available cluster
    authentication.

    If ``kubeconfig`` is set, that file is used. Otherwise in-cluster
    authentication is tried first, falling back to the default kubectl
    config file, which is appropriate for development.
    """
    if kubeconfig:
        kubernetes.config.load_kube_config(config_file=kubeconfig)
    else:
        try:
            kubernetes.config.load_incluster_config()
        except kubernetes.config.ConfigException:
            kubernetes.config.load_kube_config()
    return kubernetes.client


def make_label_selector(labels: Mapping[str, str]) -> str:
    """Format labels as an equality-based label selector."""
    return ",".join(f"{key}={value}" for key, value in labels.items())


def list_pods(
    *,
    namespace: str,
    labels: Mapping[str, str],
    k8s_client: Any,
) -> list[Any]:
    """List the pods matching a set of labels.

    Parameters
    ----------
    namespace : `str`
        The Kubernetes namespace of the pods.
    labels : `dict`
        Labels the pods must carry.
    k8s_client
        A Kubernetes client (see `create_k8sclient`).

    Returns
    -------
    pods : `list` of ``kubernetes.client.V1Pod``
        The pods, in the order returned by the API server.

    Raises
    ------
    kubernetes.client.exceptions.ApiException
        Raised unchanged if the API server rejects the request.
    """
    api = k8s_client.CoreV1Api()
    result = api.list_namespaced_pod(
        namespace=namespace, label_selector=make_label_selector(labels)
    )
    return list(result.items or [])


def list_running_pods(
    *,
    namespace: str,
    labels: Mapping[str, str],
    k8s_client: Any,
) -> list[Any]:
    """List the pods matching a set of labels that are not terminating.

    Pods with a deletion timestamp are on their way out and do not count
    toward the size of a cluster. See `list_pods` for the parameters.
    """
    pods = list_pods(namespace=namespace, labels=labels, k8s_client=k8s_client)
    return [pod for pod in pods if pod.metadata.deletion_timestamp is None]


def get_pod(*, name: str, namespace: str, k8s_client: Any) -> Any | None:
    """Get a Pod resource, or `None` if it does not exist.

    Terminating pods are returned too.

    Parameters
    ----------
    name : `str`
        The name of the Pod.
    namespace : `str`
        The Kubernetes namespace of the Pod.
    k8s_client
        A Kubernetes client (see `create_k8sclient`).
    """
    api = k8s_client.CoreV1Api()
    try:
        return api.read_namespaced_pod(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            return None
        raise


def create_pod(
    *,
    body: dict[str, Any],
    namespace: str,
    k8s_client: Any,
    logger: Any | None = None,
) -> bool:
    """Create a Pod, treating an existing pod of the same name as success.

    Parameters
    ----------
    body : `dict`
        The Pod resource (see `natsstreamingoperator.pods.build_pod`).
    namespace : `str`
        The Kubernetes namespace for the Pod.
    k8s_client
        A Kubernetes client (see `create_k8sclient`).
    logger : optional
        Logger to use for logging messages. If not provided, a default logger
        will be used.

    Returns
    -------
    created : `bool`
        `True` if the pod exists after the call, `False` if the API server
        rejected it. Failures are logged, not raised.
    """
    if logger is None:
        logger = structlog.get_logger(__name__)

    name = body["metadata"]["name"]
    api = k8s_client.CoreV1Api()
    try:
        api.create_namespaced_pod(namespace=namespace, body=body)
    except ApiException as e:
        if e.status == 409:
            logger.debug(f"Pod '{namespace}/{name}' already exists")
            return True
        logger.error(
            f"Failed to create pod '{namespace}/{name}'",
            status=e.status,
            reason=e.reason,
        )
        return False
    return True


def delete_pod(
    *,
    name: str,
    namespace: str,
    k8s_client: Any,
    logger: Any | None = None,
) -> bool:
    """Delete a Pod, treating a missing pod as success.

    Parameters
    ----------
    name : `str`
        The name of the Pod to delete.
    namespace : `str`
        The namespace where the Pod is located.
    k8s_client
        A Kubernetes client (see `create_k8sclient`).
    logger : optional
        Logger to use for logging messages.

    Returns
    -------
    deleted : `bool`
        `True` if the pod is gone or being deleted, `False` if the API
        server rejected the request.
    """
    if logger is None:
        logger = structlog.get_logger(__name__)

    api = k8s_client.CoreV1Api()
    try:
        api.delete_namespaced_pod(name=name, namespace=namespace)
    except ApiException as e:
        if e.status == 404:
            logger.debug(f"Pod '{namespace}/{name}' is already gone")
            return True
        logger.error(
            f"Failed to delete pod '{namespace}/{name}'",
            status=e.status,
            reason=e.reason,
        )
        return False
    return True
