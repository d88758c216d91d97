"""Code intended to run on start-up, before entering the run loop."""

__all__ = ("ControllerSetupError", "load_k8sclient", "resolve_namespace")

import os
from typing import Any

import kubernetes
import structlog

from natsstreamingoperator import state
from natsstreamingoperator.k8s import create_k8sclient


class ControllerSetupError(RuntimeError):
    """Raised when the controller cannot be configured. This is fatal."""


def load_k8sclient(kubeconfig: str = "", logger: Any | None = None) -> Any:
    """Create the Kubernetes client, or raise `ControllerSetupError`."""
    if logger is None:
        logger = structlog.get_logger(__name__)

    try:
        k8s_client = create_k8sclient(kubeconfig or state.kubeconfig)
    except (kubernetes.config.ConfigException, OSError) as e:
        raise ControllerSetupError(
            f"Could not configure Kubernetes client: {e}"
        ) from e
    logger.debug("Configured Kubernetes client")
    return k8s_client


def resolve_namespace(namespace: str | None = None) -> str:
    """Resolve the namespace to manage.

    An explicit namespace wins, then ``MY_POD_NAMESPACE`` from the
    environment, then the value of ``state.namespace``. An empty string means
    all namespaces.
    """
    if namespace:
        return namespace
    return os.environ.get("MY_POD_NAMESPACE") or state.namespace
